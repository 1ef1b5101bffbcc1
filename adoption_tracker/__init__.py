"""DHI adoption tracker: discovers and reports dhi.io base-image usage on GitHub."""

__version__ = "0.1.0"
