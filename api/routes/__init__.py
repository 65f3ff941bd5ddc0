"""API Routes Package."""

from api.routes import health, reviews

__all__ = [
    "health",
    "reviews",
]
