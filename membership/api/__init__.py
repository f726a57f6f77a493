"""API layer - FastAPI application over the account domain service."""
