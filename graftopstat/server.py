"""Exposition HTTP endpoint using FastAPI."""
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
import logging

from graftopstat.config import ServerConfig
from graftopstat.exposition import render
from graftopstat.store import SnapshotStore

logger = logging.getLogger(__name__)


class ExpositionAPI:
    """Serves the current snapshot; every other path answers with a liveness placeholder."""

    def __init__(self, config: ServerConfig, store: SnapshotStore):
        self.config = config
        self.store = store
        self.app = FastAPI(
            title="graftopstat",
            docs_url=None,
            redoc_url=None,
            openapi_url=None
        )

        self._setup_routes()

    def _setup_routes(self):
        """Setup API routes."""

        @self.app.get(self.config.metrics_path, response_class=PlainTextResponse)
        async def metrics():
            """Render the latest published snapshot."""
            return render(self.store.snapshot())

        @self.app.get("/{path:path}", response_class=PlainTextResponse)
        async def placeholder(path: str):
            """Liveness indicator."""
            return self.config.placeholder

    def run(self):
        """Run the API server."""
        import uvicorn
        logger.info(
            f"Serving metrics on "
            f"{self.config.bind_address}:{self.config.port}{self.config.metrics_path}"
        )
        uvicorn.run(self.app, host=self.config.bind_address, port=self.config.port, log_level="info")
