#!/usr/bin/env python3
"""
Pulse Quality – replay a recorded RGB-average trace.

Usage
-----
    python main.py RECORDING [--mode quality|peaks] [--confidence INT] ...

See ``pulse_quality.replay`` for the full option list.
"""

from __future__ import annotations

import sys

from pulse_quality.replay import main

if __name__ == "__main__":
    sys.exit(main())
