"""Powerwall backup reserve adjuster for time-of-use tariffs."""

__version__ = "1.0.0"
