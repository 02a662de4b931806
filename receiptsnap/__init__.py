"""Receipt Snap backend: receipt extraction and renewal reminders."""

__version__ = "0.1.0"
