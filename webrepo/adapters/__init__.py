"""Transport adapters for webrepo endpoints."""
