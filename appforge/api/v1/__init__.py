"""
API v1 endpoints.
"""

from .chat import router as chat_router
from .generate import router as generate_router
from .health import router as health_router

__all__ = ["chat_router", "generate_router", "health_router"]
