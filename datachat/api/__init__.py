"""FastAPI layer of the chat front end.

HTTP glue between the browser and the analysis backend.

Endpoints:
    - POST /api/process: multipart submission proxy
    - GET /health: Service health status
"""

from datachat.api.app import create_app

__all__ = ["create_app"]
