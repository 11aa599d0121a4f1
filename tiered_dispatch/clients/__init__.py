"""Document store clients."""
