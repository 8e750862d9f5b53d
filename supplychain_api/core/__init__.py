"""
Core application utilities for settings and FastAPI dependencies.

This package provides:
- Application-level settings (separate from DB settings)
- Error codes, the ApiError exception and the handlers that render the error envelope
- Logging configuration with correlation id context
- Dependency helpers (current user, request-scoped services, rate limiting)
"""
