"""freeDView tester runner: process orchestration and log attribution engine."""

__version__ = "0.1.0"
