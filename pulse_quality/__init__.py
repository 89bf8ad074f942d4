"""
Pulse Quality — fingertip pulse peak/trough detection and coverage checks.
Feed the average red, green and blue values of each camera frame; the
package finds peaks and troughs of the filtered red signal and reports
whether a finger is properly covering the lens.
"""

__version__ = "0.1.0"
__author__ = "pulse_quality"
