"""
FastAPI service for the adoption tracker.

Provides:
- GET /health - Service health check
- /api/projects, /api/stats, /api/history, /api/snapshots - Read endpoints
- POST /api/refresh, GET /api/refresh/status - Refresh control
- /api/notifications - Subscriber management
"""

from adoption_tracker.api.app import create_app

__all__ = ["create_app"]
