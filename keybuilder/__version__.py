"""Version information for Keybuilder."""

__version__ = "0.2.0"
