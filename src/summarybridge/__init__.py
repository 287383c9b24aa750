"""Client for submitting documents to an asynchronous summary service."""

__version__ = "0.1.0"
