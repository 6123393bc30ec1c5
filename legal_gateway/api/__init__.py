"""API Package - FastAPI routes and middleware.

Components:
- routes: API endpoint routers (health, tools)
- middleware: Request/response middleware (logging)

Note: Import routers directly from legal_gateway.api.routes to avoid circular imports.
"""

__all__ = ["routes", "middleware"]
