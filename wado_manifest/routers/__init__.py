"""Router modules for API endpoints."""

from wado_manifest.routers import manifest

__all__ = ["manifest"]
