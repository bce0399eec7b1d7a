"""Shared utilities: logging, database helpers, chunk codec, HTTP client factory."""
