"""Dashboard route modules."""
