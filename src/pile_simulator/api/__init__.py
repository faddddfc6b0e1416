"""Local HTTP control API."""
