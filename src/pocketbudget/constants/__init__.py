"""Static lookup tables shared across services."""
