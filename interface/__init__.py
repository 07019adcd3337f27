"""Outer surfaces: REST API and terminal runner."""
