"""clonefleet - Clone and keep up to date a fleet of remote repositories."""

__version__ = "0.1.0"
