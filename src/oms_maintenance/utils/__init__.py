"""Shared helpers: settings, file handling and the service HTTP client."""
