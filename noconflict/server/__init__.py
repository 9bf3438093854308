"""
noconflict HTTP API Server.

Usage:
    # Start server
    uvicorn noconflict.server:app --reload

    # Or programmatically
    from noconflict.server import app, create_app
"""

from noconflict.server.app import app, create_app

__all__ = ["app", "create_app"]
