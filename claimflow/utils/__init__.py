"""Shared utilities: logging, errors and document formatters."""
