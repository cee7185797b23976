from __future__ import annotations

"""Built-in capabilities shipped with the runtime.

File capabilities enforce ``InvocationContext.allowed_paths``: a path that
does not resolve inside one of the allowed roots raises
``PermissionDeniedError``. ``allowed_paths=None`` leaves the filesystem
unrestricted; an empty allow-list denies everything.

Blocking filesystem calls run in a worker thread via ``asyncio.to_thread``
so a slow disk never stalls the event loop.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

import httpx
from pydantic import BaseModel, ConfigDict, Field

from ..errors import CapabilityError, PermissionDeniedError
from ..schemas.domain import CapabilityCategory
from .base import Capability, InvocationContext
from .schema import ParameterSchema

logger = logging.getLogger(__name__)


class _Params(BaseModel):
    model_config = ConfigDict(extra="forbid")


class FileReadInput(_Params):
    """Input schema for file read operation."""

    path: str = Field(..., min_length=1, description="Path of the file to read")
    encoding: str = Field(default="utf-8", description="File encoding (default: utf-8)")
    max_bytes: int = Field(default=1_000_000, ge=1, description="Refuse files larger than this")


class FileWriteInput(_Params):
    """Input schema for file write operation."""

    path: str = Field(..., min_length=1, description="Path of the file to write")
    content: str = Field(..., description="Content to write to the file")
    encoding: str = Field(default="utf-8", description="File encoding (default: utf-8)")
    create_dirs: bool = Field(default=True, description="Create parent directories if they don't exist")


class ListDirectoryInput(_Params):
    path: str = Field(..., min_length=1, description="Directory to list")


class WebFetchInput(_Params):
    url: str = Field(..., min_length=1, description="HTTP(S) URL to fetch")
    max_chars: int = Field(default=20_000, ge=1, description="Truncate the body to this many characters")


class CurrentTimeInput(_Params):
    pass


def resolve_allowed_path(raw: str, allowed_paths: Optional[Sequence[str]]) -> Path:
    """
    Resolve ``raw`` and check it against the allow-list.

    Args:
        raw: The user-supplied path.
        allowed_paths: Allowed root directories, or ``None`` for no restriction.

    Returns:
        The resolved absolute path.

    Raises:
        PermissionDeniedError: If the path is outside every allowed root.
    """
    path = Path(raw).expanduser().resolve()
    if allowed_paths is None:
        return path
    for root in allowed_paths:
        if path.is_relative_to(Path(root).expanduser().resolve()):
            return path
    raise PermissionDeniedError(f"path not allowed: {raw}")


@dataclass(frozen=True)
class ReadFileCapability(Capability):
    """Read a text file inside the allowed paths."""

    name: str = "read_file"
    description: str = "Read the text content of a file."
    category: CapabilityCategory = CapabilityCategory.file
    parameter_schema: ParameterSchema = ParameterSchema(FileReadInput)

    async def invoke(self, params: Dict[str, Any], ctx: InvocationContext) -> Any:
        path = resolve_allowed_path(params["path"], ctx.allowed_paths)
        return await asyncio.to_thread(self._read, path, params["encoding"], params["max_bytes"])

    @staticmethod
    def _read(path: Path, encoding: str, max_bytes: int) -> Dict[str, Any]:
        if not path.exists():
            raise CapabilityError(f"File not found: {path}")
        if not path.is_file():
            raise CapabilityError(f"Path is not a file: {path}")
        size_bytes = path.stat().st_size
        if size_bytes > max_bytes:
            raise CapabilityError(f"File too large: {size_bytes} bytes > {max_bytes}")
        content = path.read_text(encoding=encoding)
        logger.info(f"Read file: {path} ({size_bytes} bytes)")
        return {"path": str(path), "content": content, "size_bytes": size_bytes}


@dataclass(frozen=True)
class WriteFileCapability(Capability):
    """Write a text file inside the allowed paths."""

    name: str = "write_file"
    description: str = "Write text content to a file, replacing it if it exists."
    category: CapabilityCategory = CapabilityCategory.file
    parameter_schema: ParameterSchema = ParameterSchema(FileWriteInput)

    async def invoke(self, params: Dict[str, Any], ctx: InvocationContext) -> Any:
        path = resolve_allowed_path(params["path"], ctx.allowed_paths)
        return await asyncio.to_thread(
            self._write, path, params["content"], params["encoding"], params["create_dirs"]
        )

    @staticmethod
    def _write(path: Path, content: str, encoding: str, create_dirs: bool) -> Dict[str, Any]:
        if create_dirs:
            path.parent.mkdir(parents=True, exist_ok=True)
        elif not path.parent.exists():
            raise CapabilityError(f"Parent directory does not exist: {path.parent}")
        data = content.encode(encoding)
        path.write_bytes(data)
        logger.info(f"Wrote file: {path} ({len(data)} bytes)")
        return {"path": str(path), "bytes_written": len(data)}


@dataclass(frozen=True)
class ListDirectoryCapability(Capability):
    name: str = "list_directory"
    description: str = "List the entries of a directory."
    category: CapabilityCategory = CapabilityCategory.file
    parameter_schema: ParameterSchema = ParameterSchema(ListDirectoryInput)

    async def invoke(self, params: Dict[str, Any], ctx: InvocationContext) -> Any:
        path = resolve_allowed_path(params["path"], ctx.allowed_paths)
        return await asyncio.to_thread(self._list, path)

    @staticmethod
    def _list(path: Path) -> Dict[str, Any]:
        if not path.is_dir():
            raise CapabilityError(f"Not a directory: {path}")
        entries = [
            {"name": child.name, "type": "dir" if child.is_dir() else "file"}
            for child in sorted(path.iterdir(), key=lambda p: p.name)
        ]
        return {"path": str(path), "entries": entries}


@dataclass(frozen=True)
class WebFetchCapability(Capability):
    """
    Fetch the body of a web page.

    ``client`` may be injected (e.g. an ``httpx.AsyncClient`` with a mock
    transport); otherwise a short-lived client is opened per call.
    """

    name: str = "web_fetch"
    description: str = "Fetch a URL over HTTP(S) and return the response text."
    category: CapabilityCategory = CapabilityCategory.network
    parameter_schema: ParameterSchema = ParameterSchema(WebFetchInput)
    network_bound: bool = True
    client: Optional[httpx.AsyncClient] = None

    async def invoke(self, params: Dict[str, Any], ctx: InvocationContext) -> Any:
        url = params["url"]
        if not url.startswith(("http://", "https://")):
            raise CapabilityError(f"unsupported url scheme: {url}")

        if self.client is not None:
            resp = await self.client.get(url, follow_redirects=True)
        else:
            async with httpx.AsyncClient(follow_redirects=True) as client:
                resp = await client.get(url)
        resp.raise_for_status()

        text = resp.text
        max_chars = params["max_chars"]
        return {
            "url": str(resp.url),
            "status_code": resp.status_code,
            "content_type": resp.headers.get("content-type"),
            "content": text[:max_chars],
            "truncated": len(text) > max_chars,
        }


@dataclass(frozen=True)
class CurrentTimeCapability(Capability):
    name: str = "current_time"
    description: str = "Return the current UTC time in ISO-8601 format."
    category: CapabilityCategory = CapabilityCategory.system
    parameter_schema: ParameterSchema = ParameterSchema(CurrentTimeInput)

    async def invoke(self, params: Dict[str, Any], ctx: InvocationContext) -> Any:
        return {"utc": datetime.now(timezone.utc).isoformat()}
