"""API Package.

FastAPI server for reviewing and committing OCR batches.
"""

from api.server import create_app, app

__all__ = [
    "create_app",
    "app",
]
