"""Administrator endpoints."""
