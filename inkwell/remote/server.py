"""HTTP mirror of the workspace for a secondary (browser or phone) client.

Project ids are directory names under the projects root. Every route except
``/api/status`` and ``/api/login`` needs a bearer token from ``/api/login``.
Handlers are plain functions so they run on the threadpool and serialize
manifest writes on the same project locks as the local CLI.
"""
import time
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import BaseModel

from .. import __version__
from ..context import AppContext
from ..errors import ConflictError, InkwellError, NotFoundError, ParseError, ValidationError
from ..utils.logging import get_logger
from .security import RemoteAuth, bearer_scheme

logger = get_logger("remote")

ERROR_STATUS = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (ParseError, status.HTTP_400_BAD_REQUEST),
)


class LoginRequest(BaseModel):
    password: str = ""


class ChapterCreateRequest(BaseModel):
    title: str = ""
    content: str = ""


class ChapterSaveRequest(BaseModel):
    content: str
    title: Optional[str] = None


class ChapterRenameRequest(BaseModel):
    title: str


def status_for(error: InkwellError) -> int:
    for error_type, code in ERROR_STATUS:
        if isinstance(error, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def create_app(context: AppContext, password: str = "", secret_key: Optional[str] = None) -> FastAPI:
    """
    Build the remote-access application around a shared context.

    Args:
        context: Application context (services, settings and locks)
        password: Access password or bcrypt hash ('' = development mode)
        secret_key: Token signing key (random per process if None)
    """
    auth = RemoteAuth(password=password, secret_key=secret_key)
    app = FastAPI(title="Inkwell Remote", version=__version__)
    app.state.context = context
    app.state.auth = auth

    if auth.development_mode:
        logger.warning("Remote access has no password set; any non-empty password will log in")

    def require_token(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> dict:
        return auth.require_token(credentials)

    @app.middleware("http")
    async def access_log_middleware(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed = (time.perf_counter() - started) * 1000
        logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed:.1f} ms)")
        return response

    @app.exception_handler(InkwellError)
    async def inkwell_error_handler(request: Request, exc: InkwellError):
        code = status_for(exc)
        if code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=code, content={"error": str(exc), "kind": exc.kind})

    # --- Open ---

    @app.get("/api/status")
    def get_status():
        return {"status": "running", "version": __version__, "developmentMode": auth.development_mode}

    @app.post("/api/login")
    def login(body: LoginRequest):
        if not body.password:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Password required")
        if not auth.check_password(body.password):
            logger.warning("Remote login rejected")
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Wrong password")
        logger.info("Remote client logged in")
        return {"success": True, "token": auth.create_access_token()}

    # --- Projects ---

    def project_dir(project_id: str):
        return context.projects.project_path(project_id)

    @app.get("/api/projects", dependencies=[Depends(require_token)])
    def list_projects():
        return [summary.to_json() for summary in context.projects.list_projects()]

    @app.get("/api/projects/{project_id}", dependencies=[Depends(require_token)])
    def get_project(project_id: str):
        return context.projects.load_project(project_dir(project_id)).to_json()

    @app.put("/api/projects/{project_id}", dependencies=[Depends(require_token)])
    def update_project(project_id: str, updates: Dict[str, Any]):
        return context.projects.save_project_metadata(project_dir(project_id), updates).to_json()

    # --- Chapters ---

    @app.post(
        "/api/projects/{project_id}/chapters",
        status_code=status.HTTP_201_CREATED,
        dependencies=[Depends(require_token)]
    )
    def create_chapter(project_id: str, body: ChapterCreateRequest):
        path = project_dir(project_id)
        chapter = context.chapters.create_chapter(path, body.title)
        if body.content:
            context.chapters.save_chapter(path, chapter.id, chapter.title, body.content)
            chapter = context.chapters.load_chapter(path, chapter.id)
        return chapter.to_json()

    @app.get("/api/projects/{project_id}/chapters/{chapter_id}", dependencies=[Depends(require_token)])
    def get_chapter(project_id: str, chapter_id: str):
        return context.chapters.load_chapter(project_dir(project_id), chapter_id).to_json()

    @app.put("/api/projects/{project_id}/chapters/{chapter_id}", dependencies=[Depends(require_token)])
    def save_chapter(project_id: str, chapter_id: str, body: ChapterSaveRequest):
        path = project_dir(project_id)
        title = body.title
        if title is None:
            try:
                title = context.chapters.load_chapter(path, chapter_id).title
            except NotFoundError:
                title = ""
        context.chapters.save_chapter(path, chapter_id, title, body.content)
        return context.chapters.load_chapter(path, chapter_id).to_json()

    @app.patch("/api/projects/{project_id}/chapters/{chapter_id}", dependencies=[Depends(require_token)])
    def rename_chapter(project_id: str, chapter_id: str, body: ChapterRenameRequest):
        return context.chapters.rename_chapter(project_dir(project_id), chapter_id, body.title).to_json()

    @app.delete("/api/projects/{project_id}/chapters/{chapter_id}", dependencies=[Depends(require_token)])
    def delete_chapter(project_id: str, chapter_id: str):
        context.chapters.delete_chapter(project_dir(project_id), chapter_id)
        return {"success": True}

    # --- Characters and world settings ---

    @app.get("/api/projects/{project_id}/charset/{kind}", dependencies=[Depends(require_token)])
    def list_charset(project_id: str, kind: str):
        return [entry.to_json() for entry in context.characters.list_entries(project_dir(project_id), kind)]

    @app.put("/api/projects/{project_id}/charset/{kind}", dependencies=[Depends(require_token)])
    def save_charset_entry(project_id: str, kind: str, fields: Dict[str, Any]):
        return context.characters.save_entry(project_dir(project_id), kind, fields).to_json()

    @app.delete("/api/projects/{project_id}/charset/{kind}/{entry_id}", dependencies=[Depends(require_token)])
    def delete_charset_entry(project_id: str, kind: str, entry_id: str):
        if not context.characters.delete_entry(project_dir(project_id), kind, entry_id):
            raise NotFoundError(f"No {kind} with id {entry_id}")
        return {"success": True}

    # --- Settings ---

    @app.get("/api/settings", dependencies=[Depends(require_token)])
    def get_settings():
        return context.reload_settings().masked().to_json()

    @app.post("/api/settings", dependencies=[Depends(require_token)])
    def save_settings(update: Dict[str, Any]):
        settings = context.reload_settings(context.settings_store.update(update))
        return {"success": True, "settings": settings.masked().to_json()}

    @app.get("/api/recent-projects", dependencies=[Depends(require_token)])
    def recent_projects():
        return [project.to_json() for project in context.settings_store.recent_projects()]

    return app


def serve(context: AppContext, host: Optional[str] = None, port: Optional[int] = None):
    """Run the remote mirror with uvicorn (blocks until stopped)."""
    import uvicorn

    settings = context.settings
    app = create_app(context, password=settings.remote_password, secret_key=settings.remote_secret_key)
    host = host or settings.remote_host
    port = port or settings.remote_port
    logger.info(f"Starting remote access on http://{host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level=settings.log_level.lower())
