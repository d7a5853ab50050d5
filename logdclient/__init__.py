"""Client for the logd daemon's control socket (control) and reader socket (reader)."""

__version__ = "0.1.0"
__all__ = ["control", "reader"]