"""Configuration loading for Keybuilder."""
