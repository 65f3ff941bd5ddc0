"""API Services Package."""

from api.services.review_store import ReviewNotFoundError, ReviewStore, get_review_store

__all__ = [
    "ReviewNotFoundError",
    "ReviewStore",
    "get_review_store",
]
