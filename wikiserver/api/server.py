"""
Multi-user wiki HTTP server.

Serves one wiki per directory. Every page, favicon and media file request is
checked against the wiki's access policy (view); uploads need the upload
capability. Requests for wikis the caller may not see get the same response
whether or not the wiki exists.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse, Response
from pydantic import BaseModel, ValidationError

from wikiserver.auth.models import Identity
from wikiserver.authz.policy import TenantAuthorizer, TenantExistsError
from wikiserver.files.paths import mime_for, resolve_safe_path
from wikiserver.settings.config import load_server_config
from wikiserver.settings.store import ConfigStore, ConfigStoreError, NodeKind, node_kind
from wikiserver.storage.local_store import LocalWikiStore, valid_wiki_name

logger = logging.getLogger(__name__)

UNAUTHORISED_HTML = (
    "<html><p>You don't have the authorisation to view this wiki.</p> <p><a href='/'>Return to login</a></p></html>"
)
NO_WIKI_HTML = (
    "<html><p>No wiki found! Either there is no usable wiki in the listed location or it isn't listed.</p></html>"
)

DEFAULT_ROOT_WIKI = "RootWiki"
DEFAULT_WIKIS_PATH = "Wikis"


@dataclass
class Runtime:
    config: ConfigStore
    authorizer: TenantAuthorizer
    max_upload_bytes: int

    def wikis(self) -> LocalWikiStore:
        return LocalWikiStore(base_dir=wikis_base_dir(self.config))

    def root_wiki(self) -> str:
        name = self.config.get("rootWikiName")
        return name if isinstance(name, str) and name else DEFAULT_ROOT_WIKI

    def serve_plugin(self) -> bool:
        return self.config.get("servePlugin", default=True) is not False

    def mime_map(self) -> Optional[Dict[str, str]]:
        raw = self.config.get("mimeMap")
        if node_kind(raw) is not NodeKind.MAPPING:
            return None
        return {str(k).lower(): v for k, v in raw.items() if isinstance(v, str)}


def wikis_base_dir(config: ConfigStore) -> str:
    base = config.get("wikiPathBase")
    if base == "homedir":
        base = os.path.expanduser("~")
    elif not isinstance(base, str) or not base:
        base = "."
    wikis_path = config.get("wikisPath")
    if not isinstance(wikis_path, str) or not wikis_path:
        wikis_path = DEFAULT_WIKIS_PATH
    return os.path.abspath(os.path.join(base, wikis_path))


_runtime: Optional[Runtime] = None
_runtime_lock = threading.Lock()


def build_runtime(store: ConfigStore, *, max_upload_bytes: Optional[int] = None) -> Runtime:
    if max_upload_bytes is None:
        max_upload_bytes = load_server_config().max_upload_bytes
    return Runtime(config=store, authorizer=TenantAuthorizer(store), max_upload_bytes=max_upload_bytes)


def get_runtime() -> Runtime:
    """Return the process-wide runtime, loading configuration on first use."""
    global _runtime
    cached = _runtime
    if cached is not None:
        return cached
    with _runtime_lock:
        if _runtime is None:
            cfg = load_server_config()
            store = ConfigStore.open(cfg.defaults_path, cfg.local_path)
            _runtime = build_runtime(store, max_upload_bytes=cfg.max_upload_bytes)
            logger.info(
                "Configuration loaded: defaults=%s local=%s wikis=%s",
                cfg.defaults_path,
                cfg.local_path,
                wikis_base_dir(store),
            )
        return _runtime


def set_runtime(runtime: Optional[Runtime]) -> None:
    global _runtime
    with _runtime_lock:
        _runtime = runtime


app = FastAPI(title="Multi-user wiki server")


class UploadFields(BaseModel):
    title: str
    text: str


class UploadTiddler(BaseModel):
    fields: UploadFields


class UploadRequest(BaseModel):
    wiki: Optional[str] = None
    tiddler: UploadTiddler


class CreateWikiRequest(BaseModel):
    name: str
    public: bool = False


def _identity(request: Request) -> Optional[Identity]:
    return getattr(request.state, "identity", None)


def _unauthorised() -> HTMLResponse:
    return HTMLResponse(UNAUTHORISED_HTML, status_code=403)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Attach the caller's identity (if any) and log every request."""
    start_time = time.time()
    logger.debug("%s %s", request.method, request.url.path)
    try:
        from wikiserver.auth.deps import authenticate_request

        request.state.identity = authenticate_request(request)
        response = await call_next(request)
        process_time = time.time() - start_time
        logger.debug("%s %s - %d (%.3fs)", request.method, request.url.path, response.status_code, process_time)
        return response
    except Exception as e:
        process_time = time.time() - start_time
        logger.exception("%s %s - ERROR after %.3fs: %s", request.method, request.url.path, process_time, str(e))
        raise


@app.get("/healthz")
def healthz() -> Dict[str, Any]:
    return {"ok": True}


def _serve_wiki(rt: Runtime, request: Request, wiki_name: str) -> Response:
    if not rt.authorizer.can_view(wiki_name, _identity(request)):
        return _unauthorised()
    wikis = rt.wikis()
    if not wikis.load_wiki(wiki_name):
        return HTMLResponse(NO_WIKI_HTML, status_code=200)
    return HTMLResponse(wikis.render_wiki(wiki_name, include_assets=rt.serve_plugin()), status_code=200)


def _serve_favicon(rt: Runtime, request: Request, wiki_name: str) -> Response:
    if not rt.authorizer.can_view(wiki_name, _identity(request)):
        return _unauthorised()
    data = rt.wikis().favicon(wiki_name)
    if data is None:
        return Response(status_code=404)
    return Response(content=data, media_type="image/x-icon")


def _serve_media_file(rt: Runtime, request: Request, wiki_name: str, file_path: str) -> Response:
    # Denied, unknown type and missing file all look the same to the caller.
    if not rt.authorizer.can_view(wiki_name, _identity(request)):
        return Response(status_code=404)
    media_type = mime_for(file_path, rt.mime_map())
    if media_type is None:
        return Response(status_code=404)
    files_root = rt.wikis().files_dir(wiki_name)
    if files_root is None:
        return Response(status_code=404)
    path = resolve_safe_path(files_root, file_path)
    if path is None:
        logger.warning("Refused file path outside %s: %r", wiki_name, file_path)
        return Response(status_code=404)
    if not path.is_file():
        return Response(status_code=404)
    return FileResponse(path, media_type=media_type)


@app.get("/")
def root_wiki(request: Request) -> Response:
    rt = get_runtime()
    return _serve_wiki(rt, request, rt.root_wiki())


@app.get("/favicon")
def root_favicon(request: Request) -> Response:
    rt = get_runtime()
    return _serve_favicon(rt, request, rt.root_wiki())


@app.get("/files/{file_path:path}")
def root_media_file(request: Request, file_path: str) -> Response:
    rt = get_runtime()
    return _serve_media_file(rt, request, rt.root_wiki(), file_path)


@app.post("/upload")
async def upload(request: Request) -> Response:
    """
    Store a media file for a wiki.

    The target wiki is named by the `x-wiki-name` header; the JSON body carries
    `tiddler.fields.title` (file name) and `tiddler.fields.text` (base64 content).
    """
    rt = get_runtime()
    wiki_name = (request.headers.get("x-wiki-name") or "").strip()
    if not wiki_name or not rt.authorizer.can_upload(wiki_name, _identity(request)):
        return Response(status_code=404)

    declared = request.headers.get("content-length")
    if declared is not None and declared.isdigit() and int(declared) > rt.max_upload_bytes:
        raise HTTPException(status_code=413, detail="Upload too large")
    # Chunked bodies carry no length; stop reading once the cap is passed.
    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > rt.max_upload_bytes:
            raise HTTPException(status_code=413, detail="Upload too large")

    try:
        req = UploadRequest.model_validate_json(bytes(body))
    except ValidationError:
        raise HTTPException(status_code=400, detail="Invalid upload body")
    if req.wiki is not None and req.wiki != wiki_name:
        raise HTTPException(status_code=400, detail="Wiki name does not match x-wiki-name")
    try:
        data = base64.b64decode(req.tiddler.fields.text, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=400, detail="File content is not valid base64")

    try:
        path = rt.wikis().put_file(wiki_name, req.tiddler.fields.title, data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return JSONResponse({"ok": True, "wiki": wiki_name, "file": path.name, "bytes": len(data)})


@app.post("/api/wikis")
def create_wiki(req: CreateWikiRequest, request: Request) -> Dict[str, Any]:
    """Create a wiki owned by the caller and record its initial access settings."""
    identity = _identity(request)
    if identity is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    if not valid_wiki_name(req.name):
        raise HTTPException(status_code=400, detail="Invalid wiki name")

    rt = get_runtime()
    wikis = rt.wikis()
    if wikis.load_wiki(req.name):
        raise HTTPException(status_code=409, detail="Wiki already exists")

    try:
        policy = rt.authorizer.create_tenant(req.name, identity, req.public)
    except TenantExistsError:
        raise HTTPException(status_code=409, detail="Wiki already exists")
    except ConfigStoreError as e:
        logger.error("Wiki %s not created: %s", req.name, e)
        raise HTTPException(status_code=503, detail="Wiki settings could not be saved; the wiki was not created")

    wikis.create_wiki(req.name)
    return {"ok": True, "name": req.name, "public": policy.public, "owner": policy.owner}


@app.get("/{wiki_name}")
def wiki_page(wiki_name: str, request: Request) -> Response:
    return _serve_wiki(get_runtime(), request, wiki_name)


@app.get("/{wiki_name}/favicon.ico")
def wiki_favicon(wiki_name: str, request: Request) -> Response:
    return _serve_favicon(get_runtime(), request, wiki_name)


@app.get("/{wiki_name}/files/{file_path:path}")
def wiki_media_file(wiki_name: str, file_path: str, request: Request) -> Response:
    return _serve_media_file(get_runtime(), request, wiki_name, file_path)


def run(host: str = "0.0.0.0", port: int = 8080) -> None:
    import uvicorn

    log_level = os.getenv("LOG_LEVEL", "info").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.setLevel(getattr(logging, log_level, logging.INFO))

    uvicorn_log_level = (
        log_level.lower() if log_level.lower() in ["critical", "error", "warning", "info", "debug", "trace"] else "info"
    )

    get_runtime()
    logger.info("Starting wiki server on %s:%d (log_level=%s)", host, port, log_level)
    uvicorn.run(app, host=host, port=port, log_level=uvicorn_log_level)
