"""HTTP API for Workflow Studio."""

from .endpoints import router, init_dependencies

__all__ = ["router", "init_dependencies"]
