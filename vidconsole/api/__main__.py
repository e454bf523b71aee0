"""API server entry point for python -m vidconsole.api"""
import uvicorn
from vidconsole import setup_logging
from vidconsole.config import settings

if __name__ == "__main__":
    setup_logging(settings.logging.level)
    uvicorn.run(
        "vidconsole.api.app:app",
        host=settings.server.host,
        port=settings.server.port,
        reload=False,
    )
