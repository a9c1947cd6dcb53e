"""API server entry point for python -m oneshot.api"""
import uvicorn

from oneshot.config import settings
from oneshot.logging_setup import configure_logging

if __name__ == "__main__":
    configure_logging()
    uvicorn.run(
        "oneshot.api.app:create_app",
        factory=True,
        host=settings.server.host,
        port=settings.server.port,
        reload=False,
    )
