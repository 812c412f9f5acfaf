"""Price resolution."""
