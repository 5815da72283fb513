"""
Web service launcher
"""

import uvicorn

from tokenprism.core.config import ServerConfig


def serve(server: ServerConfig | None = None, *, log_level: str = "info") -> None:
    """Run the FastAPI app under uvicorn."""
    server = server or ServerConfig()
    uvicorn.run(
        "tokenprism.web.app:create_app",
        factory=True,
        host=server.host,
        port=server.port,
        reload=server.reload,
        log_level=log_level.lower(),
    )


if __name__ == "__main__":
    serve()
