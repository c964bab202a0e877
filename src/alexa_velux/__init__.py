"""alexa-velux - credential lifecycle and retry orchestration for the Velux Active backend."""

__version__ = "0.1.0"
