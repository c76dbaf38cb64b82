"""Shared helpers: error taxonomy, logging and document validation."""
