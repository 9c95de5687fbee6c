"""Live lecture transcription, organized into classes."""

__version__ = "0.1.0"
