#!/usr/bin/env python3
"""Setup script for languages-go-stickers package."""

from setuptools import setup, find_packages

setup(
    name="languages-go-stickers",
    version="0.1.0",
    description="Background sticker generation for Languages Go! vocabulary cards",
    author="Languages Go Project",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "click>=8.0.0",
        "Pillow>=10.0.0",
        "PyYAML>=6.0",
        "google-genai>=1.0.0",
        "requests>=2.28.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "dev": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "languagesgo=languagesgo.cli:cli",
        ],
    },
    python_requires=">=3.10",
)
