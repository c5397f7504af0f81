"""Vibe job worker: runs the coding agent against E2B sandboxes."""
