"""Keybuilder - prepare bootable multi-partition USB keys."""

from keybuilder.__version__ import __version__

APP_NAME = "Keybuilder"

__all__ = ["APP_NAME", "__version__"]
