"""Shared utilities: observability instances and the service error taxonomy."""
