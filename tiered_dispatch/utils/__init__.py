"""Cache, document store and key utilities."""
