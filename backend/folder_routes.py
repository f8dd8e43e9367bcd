"""
Folder API Routes

Thin HTTP wrappers around the files module:
- POST /folder   list the files of a shared folder
- POST /resolve  pick one file, probe it, hand back a stream link
- GET  /stream   relay the bytes of a direct URL

Cookies come from the request (body "cookie" field, or X-Cookie header on
/stream) or, when the caller sends none, from the server configuration.
"""

import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx
from fastapi import APIRouter, Header, Request
from fastapi.responses import JSONResponse, StreamingResponse

from files import (
    SessionCredential,
    UpstreamError,
    crawl_folder,
    new_client,
    open_stream,
    probe_metadata,
)
from schemas import (
    ErrorBody, ErrorCode, FileEntry, FolderListing, FolderRequest,
    ResolvedFile, ResolveRequest
)
from settings import ServiceSettings

logger = logging.getLogger("folder-stream.api")

router = APIRouter(tags=["Folder"])


# ============================================================
# HELPERS
# ============================================================

def get_settings(request: Request) -> ServiceSettings:
    """Settings attached to the app by create_app()."""
    return request.app.state.settings


def error_response(status_code: int, code: ErrorCode, message: Optional[str] = None) -> JSONResponse:
    body = ErrorBody(error=code, message=message)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def normalize_pick(pick: Any) -> int:
    """
    Integral picks are used as-is (2 and 2.0 alike); anything else, including
    booleans and fractional numbers, means 0.
    """
    if isinstance(pick, bool):
        return 0
    if isinstance(pick, int):
        return pick
    if isinstance(pick, float) and pick.is_integer():
        return int(pick)
    return 0


def stream_link(request: Request, direct_url: str) -> str:
    return f"{request.base_url}stream?url={quote(direct_url, safe='')}"


def _missing_cookie() -> JSONResponse:
    return error_response(
        400,
        ErrorCode.MISSING_COOKIE,
        "No cookie supplied and no server cookie configured (TERABOX_COOKIE).",
    )


# ============================================================
# ROUTES
# ============================================================

@router.post("/folder")
async def list_folder(request: Request, body: Optional[FolderRequest] = None):
    """
    Crawl a shared folder and return its files.

    Returns {ok, count, files[]} where each file is {id, name, size, directUrl}.
    """
    body = body or FolderRequest()
    settings = get_settings(request)

    if not body.url:
        return error_response(400, ErrorCode.MISSING_URL, "url is required")
    cookie = settings.pick_cookie(body.cookie)
    if not cookie:
        return _missing_cookie()

    credential = SessionCredential.for_url(cookie, body.url, settings.fallback_domain)
    logger.info(f"[FOLDER] {body.url}")

    try:
        files = await crawl_folder(body.url, credential, settings)
        if not files:
            logger.warning(f"[FOLDER] No files recognized for {body.url}")
            return error_response(
                200,
                ErrorCode.NO_FILES_FOUND,
                "Opened the folder, but could not read the file list. "
                "The page layout or its API may be different for this link.",
            )

        return FolderListing(
            count=len(files),
            files=[FileEntry(**f.to_dict()) for f in files],
        )
    except Exception as e:
        logger.exception(f"[FOLDER] Failed: {e}")
        return error_response(500, ErrorCode.SERVER_ERROR, str(e) or "Error")


@router.post("/resolve")
async def resolve_file(request: Request, body: Optional[ResolveRequest] = None):
    """
    Re-list the folder, pick one file by index and probe its direct URL.

    Returns {ok, name, size, mime, downloadUrl}; downloadUrl points at /stream.
    """
    body = body or ResolveRequest()
    settings = get_settings(request)

    if not body.url:
        return error_response(400, ErrorCode.MISSING_URL, "url is required")
    cookie = settings.pick_cookie(body.cookie)
    if not cookie:
        return _missing_cookie()

    index = normalize_pick(body.pick)
    credential = SessionCredential.for_url(cookie, body.url, settings.fallback_domain)
    logger.info(f"[RESOLVE] {body.url} pick={index}")

    try:
        files = await crawl_folder(body.url, credential, settings)
        if not files:
            logger.warning(f"[RESOLVE] No files recognized for {body.url}")
            return error_response(200, ErrorCode.NO_FILES_FOUND, "Folder list empty.")

        if index < 0 or index >= len(files):
            return error_response(
                200,
                ErrorCode.BAD_PICK,
                f"pick must be between 0 and {len(files) - 1}",
            )

        direct_url = files[index].direct_url
        if not direct_url:
            logger.warning(f"[RESOLVE] No direct URL observed for {files[index].name!r}")
            return error_response(
                200,
                ErrorCode.NO_DIRECT_URL,
                "Found the file, but no direct download URL appeared in the "
                "folder page's network traffic.",
            )

        async with new_client(settings) as client:
            meta = await probe_metadata(direct_url, credential, client)

    except UpstreamError as e:
        return error_response(e.status, ErrorCode.UPSTREAM_ERROR, str(e))
    except Exception as e:
        logger.exception(f"[RESOLVE] Failed: {e}")
        return error_response(500, ErrorCode.SERVER_ERROR, str(e) or "Error")

    return ResolvedFile(
        name=meta.name,
        size=meta.size,
        mime=meta.mime,
        downloadUrl=stream_link(request, direct_url),
    )


@router.get("/stream")
async def stream_file(
    request: Request,
    url: Optional[str] = None,
    x_cookie: Optional[str] = Header(None),
):
    """
    Relay a direct URL: upstream status, Content-Type/Length/Disposition and
    the raw body, chunk by chunk.
    """
    settings = get_settings(request)

    if not url:
        return error_response(400, ErrorCode.MISSING_URL, "url query parameter is required")
    cookie = settings.pick_cookie(x_cookie)
    if not cookie:
        return _missing_cookie()

    credential = SessionCredential.for_url(cookie, url, settings.fallback_domain)

    try:
        upstream = await open_stream(url, credential, new_client(settings), owns_client=True)
    except UpstreamError as e:
        return error_response(e.status, ErrorCode.UPSTREAM_ERROR, str(e))
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.exception(f"[STREAM] Request failed: {e}")
        return error_response(500, ErrorCode.SERVER_ERROR, str(e) or "Error")

    return StreamingResponse(
        upstream.body(),
        status_code=upstream.status_code,
        headers=upstream.headers,
    )
