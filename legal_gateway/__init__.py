"""Legal Gateway - Source Package.

Note: Import `app` directly from `legal_gateway.main` to avoid circular imports.
"""

__all__ = ["main", "api", "clients", "core", "models", "observability", "services", "tools"]
