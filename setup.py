"""
AdScribe — setuptools build script.

Usage:
    # Development install:
    pip install -e .

    # With test extras:
    pip install -e .[test]

Installs the `adscribe` console command (main:main).
"""

from setuptools import setup, find_namespace_packages

APP_NAME = "AdScribe"

setup(
    name=APP_NAME,
    version="1.0.0",
    description="Facebook Ad Library video download and diarized transcription service",
    install_requires=[
        "requests>=2.28.0",
    ],
    extras_require={
        "test": ["pytest"],
    },
    python_requires=">=3.10",
    packages=find_namespace_packages(include=["adscribe", "adscribe.*"]),
    py_modules=["main"],
    entry_points={
        "console_scripts": [
            "adscribe=main:main",
        ],
    },
)
