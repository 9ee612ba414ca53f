"""API module - FastAPI application and routes."""
