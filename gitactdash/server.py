"""FastAPI server for the GitHub Actions dashboard."""

import asyncio
import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import Depends, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder
from fastapi.responses import FileResponse, JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles

from gitactdash.auth import is_authenticated, require_token
from gitactdash.auth import router as auth_router
from gitactdash.config import Settings, get_settings, settings
from gitactdash.github_client import GitHubClient
from gitactdash.github_service import GitHubService
from gitactdash.local_storage import LocalStorageService, WebSocketStorageBridge
from gitactdash.logging_config import get_server_logger, get_ws_logger, setup_logging
from gitactdash.models import RepositoryFilter, RepositorySortBy, RepositoryType
from gitactdash.preferences import PreferencesSession
from gitactdash.result import Err, Ok, Result, Warn

setup_logging(json_logs=settings.json_logs, log_level=settings.log_level, environment=settings.environment)
log = get_server_logger()
ws_log = get_ws_logger()

STATIC_DIR = Path(__file__).parent / "static"


@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info(
        "starting_server",
        host=settings.server_host,
        port=settings.server_port,
        oauth_configured=settings.oauth_configured,
    )
    yield
    log.info("shutting_down")


app = FastAPI(title="GitHub Actions Dashboard", lifespan=lifespan)
app.include_router(auth_router)
app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")


async def get_github_client(
    token: str = Depends(require_token), config: Settings = Depends(get_settings)
) -> AsyncIterator[GitHubClient]:
    """GitHub client authenticated with the caller's token, closed after the request."""
    async with GitHubClient(token, base_url=config.github_api_url, timeout=config.request_timeout) as client:
        yield client


def get_github_service(client: GitHubClient = Depends(get_github_client)) -> GitHubService:
    return GitHubService(client)


def render_result(result: Result[Any]) -> JSONResponse:
    """Render a result: failures as 502 with their message, warnings as notices."""
    match result:
        case Ok(value):
            return JSONResponse({"status": "success", "value": jsonable_encoder(value)})
        case Warn(value, message):
            return JSONResponse(
                {
                    "status": "warning",
                    "value": jsonable_encoder(value),
                    "warnings": message.splitlines(),
                }
            )
        case Err(message):
            return JSONResponse({"status": "failure", "message": message}, status_code=502)


@app.get("/api/repositories")
async def list_repositories(
    search: str = "",
    type: RepositoryType = RepositoryType.ALL,
    sort_by: RepositorySortBy = RepositorySortBy.NAME,
    ascending: bool = True,
    service: GitHubService = Depends(get_github_service),
):
    """Repositories of the signed-in user, filtered and sorted."""
    repo_filter = RepositoryFilter(search_text=search, type=type, sort_by=sort_by, ascending=ascending)
    return render_result(await service.get_dashboard(repo_filter))


@app.get("/api/repositories/{owner}/{repo}/workflows")
async def list_workflows(owner: str, repo: str, service: GitHubService = Depends(get_github_service)):
    """Workflows of a repository with the latest run of each."""
    return render_result(await service.get_workflows_with_latest_runs(owner, repo))


@app.get("/api/repositories/{owner}/{repo}/workflows/{workflow_id}/latest-run")
async def latest_run(
    owner: str, repo: str, workflow_id: int, service: GitHubService = Depends(get_github_service)
):
    return render_result(await service.get_latest_workflow_run(owner, repo, workflow_id))


async def _run_commands(session: PreferencesSession, commands: asyncio.Queue[dict[str, Any]]) -> None:
    """Load preferences, then apply client commands one at a time."""
    try:
        await session.load()
    except Exception as e:
        ws_log.error("preferences_load_failed", error=str(e))

    while True:
        message = await commands.get()
        try:
            await session.handle(message)
        except Exception as e:
            ws_log.error("command_failed", command=message.get("type"), error=str(e))


@app.websocket("/ws/preferences")
async def preferences_endpoint(websocket: WebSocket):
    """Preferences channel; also carries localStorage calls to the page.

    The reader below only routes messages. Commands run in a separate task so
    that one waiting for a storage reply does not block reading that reply.
    """
    await websocket.accept()
    client_host = websocket.client.host if websocket.client else "unknown"
    ws_log.info("ws_connected", client=client_host)

    bridge = WebSocketStorageBridge()
    bridge.attach(websocket)
    session = PreferencesSession(LocalStorageService(bridge), websocket.send_json)
    commands: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
    worker = asyncio.create_task(_run_commands(session, commands))

    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "Invalid JSON"})
                continue

            if not isinstance(message, dict):
                await websocket.send_json({"type": "error", "message": "Expected a JSON object"})
                continue

            if message.get("type") == "ping":
                await websocket.send_json({"type": "pong"})
                continue

            if message.get("type") == "storage_result":
                bridge.resolve(message)
                continue

            await commands.put(message)

    except WebSocketDisconnect:
        ws_log.info("ws_disconnected", client=client_host)
    except Exception as e:
        ws_log.error("ws_error", client=client_host, error=str(e))
    finally:
        bridge.detach()
        worker.cancel()
        try:
            await worker
        except asyncio.CancelledError:
            pass
        except Exception as e:
            ws_log.error("command_worker_failed", client=client_host, error=str(e))


@app.get("/")
async def index():
    return RedirectResponse("/dashboard", status_code=302)


@app.get("/login")
async def login_page(request: Request):
    if is_authenticated(request):
        return RedirectResponse("/dashboard", status_code=302)
    return RedirectResponse("/api/auth/login", status_code=302)


@app.get("/dashboard")
async def dashboard_page(request: Request):
    """Static dashboard shell; data is loaded by the page from the API."""
    if not is_authenticated(request):
        return RedirectResponse("/login", status_code=302)
    return FileResponse(STATIC_DIR / "dashboard.html")


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "ok"}


def main() -> None:
    import uvicorn

    log.info("starting_uvicorn", host=settings.server_host, port=settings.server_port)
    uvicorn.run(
        "gitactdash.server:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )


if __name__ == "__main__":
    main()
