"""Persistence and configuration services."""
