#!/usr/bin/env python3
"""
Setup script for the FocusGuard focus monitor.
"""

from setuptools import setup, find_packages


def read_requirements(filename):
    """Read requirements from file."""
    with open(filename, 'r') as f:
        return [line.strip() for line in f if line.strip() and not line.startswith('#')]


# Read README for long description
def read_readme():
    """Read README file."""
    try:
        with open("README.md", "r", encoding="utf-8") as f:
            return f.read()
    except FileNotFoundError:
        return "FocusGuard - webcam focus monitor"


setup(
    name="focusguard",
    version="1.0.0",
    author="FocusGuard Team",
    description="Webcam focus monitor that opens a redirect page after sustained inattention",
    long_description=read_readme(),
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["main"],
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: End Users/Desktop",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Scientific/Engineering :: Image Processing",
    ],
    python_requires=">=3.9",
    install_requires=read_requirements("requirements.txt"),
    extras_require={
        "capture": [
            "opencv-python>=4.8.0",
            "mediapipe>=0.10.0",
        ],
        "dev": [
            "pytest>=7.4.2",
        ],
    },
    entry_points={
        "console_scripts": [
            "focusguard=main:main",
        ],
    },
    include_package_data=True,
    package_data={
        "": ["*.md", "*.txt", "*.json"],
    },
    keywords=[
        "focus",
        "attention",
        "computer-vision",
        "face-mesh",
        "pose-estimation",
        "real-time",
        "monitoring",
    ],
)
