"""Fetch, filter, and sanitize objects across Kubernetes clusters."""

__version__ = "0.1.0"
