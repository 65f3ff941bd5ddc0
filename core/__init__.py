"""Core module - models, money helpers, settings and observability.

Shared by the entity resolver, the reconciliation engine, connectors and the
API. Nothing in here knows about review sessions.
"""

__version__ = "1.0.0"
