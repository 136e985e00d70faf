"""Management commands registered under ``flask manage``."""
