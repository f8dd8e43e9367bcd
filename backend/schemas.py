"""
Pydantic schemas for data validation.
Defines the request bodies and JSON responses of the folder streaming API.
"""

from pydantic import BaseModel
from typing import Any, Optional, List
from enum import Enum


class ErrorCode(str, Enum):
    MISSING_URL = "MISSING_URL"
    MISSING_COOKIE = "MISSING_COOKIE"
    NO_FILES_FOUND = "NO_FILES_FOUND"
    BAD_PICK = "BAD_PICK"
    NO_DIRECT_URL = "NO_DIRECT_URL"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    SERVER_ERROR = "SERVER_ERROR"


class FolderRequest(BaseModel):
    """Body of POST /folder."""
    url: Optional[str] = None
    cookie: Optional[str] = None


class ResolveRequest(BaseModel):
    """Body of POST /resolve. pick is normalized by the route (non-integers mean 0)."""
    url: Optional[str] = None
    cookie: Optional[str] = None
    pick: Any = 0


class FileEntry(BaseModel):
    """One file of a folder listing."""
    id: Any
    name: str
    size: Optional[Any] = None
    directUrl: Optional[str] = None


class FolderListing(BaseModel):
    ok: bool = True
    count: int
    files: List[FileEntry] = []


class ResolvedFile(BaseModel):
    ok: bool = True
    name: str
    size: Optional[int] = None
    mime: Optional[str] = None
    downloadUrl: str


class ErrorBody(BaseModel):
    """Structured failure returned by every route."""
    ok: bool = False
    error: ErrorCode
    message: Optional[str] = None
