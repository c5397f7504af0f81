"""Vibe API service."""
