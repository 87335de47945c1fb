"""Disposable EC2 instances for test suites."""

__version__ = "0.1.0"
