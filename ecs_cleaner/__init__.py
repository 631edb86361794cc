"""Deregister unused ECS task definitions."""

__version__ = "1.0.0"
