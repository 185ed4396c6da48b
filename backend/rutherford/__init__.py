"""Rutherford: turns onboarding answers into validated hot-context profiles."""

__version__ = "0.1.0"
