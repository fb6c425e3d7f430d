"""
Exception handlers shared by every route.

Routes raise HTTPException themselves; these handlers translate the
database-level errors that can escape from a handler.
"""

import logging

from bson.errors import InvalidId
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pymongo.errors import DuplicateKeyError

logger = logging.getLogger(__name__)


def duplicate_key_field(exc: DuplicateKeyError) -> str:
    """Best-effort name of the field that violated a unique index."""
    details = exc.details or {}
    key_pattern = details.get("keyPattern") or details.get("keyValue") or {}
    if key_pattern:
        return list(key_pattern.keys())[-1]
    # Older servers only report the index name, e.g. "email_1"
    message = str(exc)
    if "index: " in message:
        index_name = message.split("index: ", 1)[1].split(" ", 1)[0]
        return index_name.rsplit("_", 1)[0].split("_1_")[-1]
    return "Record"


def humanize_field(field: str) -> str:
    return field.replace("_", " ").replace(".", " ").strip().capitalize()


async def duplicate_key_handler(request: Request, exc: DuplicateKeyError):
    field = humanize_field(duplicate_key_field(exc))
    logger.info("Duplicate key on %s %s: %s", request.method, request.url.path, field)
    return JSONResponse(status_code=400, content={"detail": f"{field} already exists"})


async def invalid_id_handler(request: Request, exc: InvalidId):
    return JSONResponse(status_code=404, content={"detail": "Resource not found"})


async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DuplicateKeyError, duplicate_key_handler)
    app.add_exception_handler(InvalidId, invalid_id_handler)
    app.add_exception_handler(ValueError, value_error_handler)
