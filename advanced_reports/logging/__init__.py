"""Request logging."""
