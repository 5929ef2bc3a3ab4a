"""Sungrow Monitor: iSolarCloud sign-in and plant monitoring client."""

__version__ = "0.1.0"
