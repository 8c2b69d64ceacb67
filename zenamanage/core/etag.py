"""
Conditional GET support for read endpoints polled by the stale-while-revalidate client.
The ETag is a digest of the serialized payload, so any change in the data changes the tag.
"""
from __future__ import annotations

import hashlib
import json
from typing import Any

from fastapi import Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from zenamanage.core.config import settings


def compute_etag(content: Any) -> str:
    """Return a strong, quoted ETag for JSON-compatible content."""
    body = json.dumps(content, sort_keys=True, separators=(",", ":"), default=str)
    digest = hashlib.md5(body.encode("utf-8")).hexdigest()
    return f'"{digest}"'


def if_none_match_matches(header_value: str | None, etag: str) -> bool:
    """Weak comparison of an If-None-Match header against an ETag."""
    if not header_value:
        return False
    candidates = [candidate.strip() for candidate in header_value.split(",")]
    if "*" in candidates:
        return True
    bare = etag.removeprefix("W/")
    return any(candidate.removeprefix("W/") == bare for candidate in candidates)


def etag_response(request: Request, payload: BaseModel | Any) -> Response:
    """
    Render payload as JSON with ETag and Cache-Control headers,
    or an empty 304 when the client already holds the current representation.
    """
    if isinstance(payload, BaseModel):
        content = payload.model_dump(mode="json")
    else:
        content = jsonable_encoder(payload)

    etag = compute_etag(content)
    headers = {
        "ETag": etag,
        "Cache-Control": settings.cache_control_header,
        "Vary": "Authorization",
    }
    if if_none_match_matches(request.headers.get("if-none-match"), etag):
        return Response(status_code=status.HTTP_304_NOT_MODIFIED, headers=headers)
    return JSONResponse(content=content, headers=headers)
