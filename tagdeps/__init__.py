"""tagdeps - declarative installer for tagged plugin archives."""

__version__ = "0.1.0"
