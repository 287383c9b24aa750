"""Core engine: normalization, rendering, submission, polling, and chat."""
