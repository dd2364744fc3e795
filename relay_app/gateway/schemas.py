"""Request and response bodies for the HTTP endpoints."""

from typing import Any, Optional

from pydantic import BaseModel


class CommandRequest(BaseModel):
    command: Optional[str] = None
    params: Optional[dict[str, Any]] = None


class CommandResponse(BaseModel):
    success: bool
    message: str
    reason: Optional[str] = None
