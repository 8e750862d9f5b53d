"""FastAPI application and HTTP/WebSocket entry points."""
