"""RPC envelopes.

Requests arrive as ``{id, method, params}``; responses are ``{id, result}``
or ``{id, error: {code, message}}``. Envelopes are correlated only by id.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

RequestId = str | int


class RpcRequest(BaseModel):
    """An inbound command envelope."""

    model_config = ConfigDict(extra="ignore")

    id: RequestId
    method: str = Field(min_length=1)
    params: dict[str, Any] = Field(default_factory=dict)


def success_response(request_id: RequestId, result: Any) -> dict[str, Any]:
    return {"id": request_id, "result": result}


def error_response(
    request_id: RequestId, code: int, message: str
) -> dict[str, Any]:
    return {"id": request_id, "error": {"code": code, "message": message}}
