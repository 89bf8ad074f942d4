from setuptools import setup, find_packages

setup(
    name="pulse_quality",
    version="0.1.0",
    description="Fingertip pulse peak/trough detection and lens coverage checks from camera RGB averages",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "numpy>=1.24",
        "scipy>=1.10",
    ],
    extras_require={
        "dev": ["pytest>=7.4"],
    },
    entry_points={
        "console_scripts": [
            "pulse-quality=pulse_quality.replay:main",
        ]
    },
)
