"""FastAPI status dashboard for watch mode."""

import asyncio
import html
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

STATUS_INITIALIZING = "Initializing..."
STATUS_BUILDING = "Building..."
STATUS_WATCHING = "Watching for changes..."
STATUS_ERROR = "Error occurred"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class _StatusModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RecentDocument(_StatusModel):
    id: Optional[str] = None
    source: str
    provider: str
    model: str
    timestamp: str
    run_id: Optional[str] = None


class DatabaseStats(_StatusModel):
    total_documents: int = 0
    frameworks: Dict[str, int] = {}
    providers: Dict[str, int] = {}
    latest_run: Optional[str] = None
    recent_documents: List[RecentDocument] = []


class BuildMetadata(_StatusModel):
    total_routes: Optional[int] = None
    total_controllers: Optional[int] = None
    total_services: Optional[int] = None
    total_types: Optional[int] = None
    analysis_time: Optional[float] = None
    database_stats: Optional[DatabaseStats] = None


class BuildStatus(_StatusModel):
    """Watch mode status reported by the dashboard."""

    status: str = STATUS_INITIALIZING
    framework: Optional[str] = None
    last_update: str = ""
    files_processed: int = 0
    is_building: bool = False
    error: Optional[str] = None
    metadata: Optional[BuildMetadata] = None


class BuildStatusTracker:
    """Mutable holder of the current BuildStatus."""

    def __init__(self):
        self.status = BuildStatus(last_update=_now())

    def update(self, **updates: Any) -> None:
        self.status = self.status.model_copy(update={**updates, "last_update": _now()})

    def set_building(self, is_building: bool) -> None:
        self.update(is_building=is_building, status=STATUS_BUILDING if is_building else STATUS_WATCHING)

    def set_framework(self, framework: str) -> None:
        self.update(framework=framework)

    def increment_files_processed(self) -> None:
        self.update(files_processed=self.status.files_processed + 1)

    def set_error(self, error: str) -> None:
        self.update(error=error, status=STATUS_ERROR, is_building=False)

    def clear_error(self) -> None:
        self.update(error=None)

    def update_metadata(self, **fields: Any) -> None:
        current = self.status.metadata or BuildMetadata()
        self.update(metadata=current.model_copy(update=fields))

    def to_json(self) -> Dict[str, Any]:
        return self.status.model_dump(mode="json", by_alias=True, exclude_none=True)


def fallback_html(status: BuildStatus) -> str:
    """Dashboard page that reloads itself every five seconds."""
    error_line = ""
    if status.error:
        error_line = f"<p class=\"error\"><strong>Error:</strong> {html.escape(status.error)}</p>"
    return f"""<!DOCTYPE html>
<html>
<head>
    <title>AutoDocGen - Watch Mode</title>
    <style>
        body {{ font-family: Arial, sans-serif; text-align: center; padding: 50px; background: #f0f0f0; }}
        .container {{ background: white; padding: 30px; border-radius: 10px; box-shadow: 0 2px 10px rgba(0,0,0,0.1); }}
        .error {{ color: #c0392b; }}
    </style>
</head>
<body>
    <div class="container">
        <h1>AutoDocGen</h1>
        <h2>{"Building documentation..." if status.is_building else "Watching for changes"}</h2>
        <p><strong>Status:</strong> <span id="status">{html.escape(status.status)}</span></p>
        <p><strong>Framework:</strong> {html.escape(status.framework or "unknown")}</p>
        <p><strong>Files processed:</strong> {status.files_processed}</p>
        <p><strong>Last update:</strong> <span id="lastUpdate">{html.escape(status.last_update)}</span></p>
        {error_line}
    </div>
    <script>
        setInterval(() => location.reload(), 5000);
    </script>
</body>
</html>"""


def create_app(tracker: BuildStatusTracker) -> FastAPI:
    """Build the dashboard application around a status tracker."""
    app = FastAPI(title="AutoDocGen Watch Status", docs_url=None, redoc_url=None)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.get("/", response_class=HTMLResponse)
    async def index():
        return HTMLResponse(fallback_html(tracker.status))

    @app.get("/api/status")
    async def api_status():
        return tracker.to_json()

    @app.get("/health")
    async def health():
        return {"status": "ok", "timestamp": _now(), "buildStatus": tracker.to_json()}

    return app


class StatusServer:
    """Runs the dashboard with uvicorn inside the current event loop."""

    def __init__(self, tracker: BuildStatusTracker, port: int = 3001, host: str = "127.0.0.1"):
        self.tracker = tracker
        self.port = port
        self.host = host
        self._server: Optional[uvicorn.Server] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def url(self) -> str:
        return f"http://localhost:{self.port}"

    async def start(self) -> None:
        config = uvicorn.Config(create_app(self.tracker), host=self.host, port=self.port, log_level="warning")
        self._server = uvicorn.Server(config)
        self._task = asyncio.create_task(self._server.serve())
        logger.info(f"Status dashboard running at {self.url}")

    async def stop(self) -> None:
        if self._server is None or self._task is None:
            return
        self._server.should_exit = True
        await self._task
        self._server = None
        self._task = None
        logger.info("Status dashboard stopped")
