"""Bridge between exercise equipment and ANT+ over a USB stick."""

__version__ = "0.1.0"
