"""Engine Arena: automated matches between configurable chess agents."""

__version__ = "1.0.0"
