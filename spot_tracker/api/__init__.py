"""
FastAPI spots service.

Provides REST API for activation spots with:
- GET /spots - Cursor-paginated listing of active spots
- POST /spots - Self-spot submission
- GET /health - Service health check
"""

from spot_tracker.api.app import create_app

__all__ = ["create_app"]
