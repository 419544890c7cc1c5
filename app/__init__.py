"""
FastAPI Application Package

Entry point of the HTTP API serving the in-memory market cache.
"""
