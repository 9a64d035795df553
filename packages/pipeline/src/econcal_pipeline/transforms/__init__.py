"""Normalization, validation and deduplication of fetched records."""
