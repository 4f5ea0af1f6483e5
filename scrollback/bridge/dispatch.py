"""Envelope parsing and method dispatch.

The dispatcher is transport-free: it takes the raw text of one inbound
message and returns the response envelope to send, or None when nothing
should be sent. Every failure below the transport becomes an error
envelope here, so a misbehaving handler never reaches the connection loop.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from pydantic import ValidationError

from scrollback.bridge.envelope import (
    RpcRequest,
    error_response,
    success_response,
)
from scrollback.common.exceptions import (
    InvalidParamsError,
    InvalidRequestError,
    MethodNotFoundError,
    RpcError,
    ScrollbackException,
)

logger = logging.getLogger(__name__)

Handler = Callable[[dict[str, Any]], Awaitable[Any]]


def _validation_summary(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"]) or "params"
        parts.append(f"{location}: {item['msg']}")
    return "invalid params: " + "; ".join(parts)


class Dispatcher:
    """Routes request envelopes to handlers.

    Args:
        methods: Method name to async handler. Handlers receive the raw
            params dict and return a JSON-serializable result.
    """

    def __init__(self, methods: Mapping[str, Handler]) -> None:
        self.methods = dict(methods)

    async def dispatch(self, raw: str | bytes) -> dict[str, Any] | None:
        """Handle one inbound message.

        Returns:
            The response envelope, or None for messages that can't be
            answered (malformed JSON, no recoverable id).
        """
        try:
            payload = json.loads(raw)
        except ValueError as e:
            logger.warning(f"Dropping malformed message: {e}")
            return None

        try:
            request = RpcRequest.model_validate(payload)
        except ValidationError:
            request_id = payload.get("id") if isinstance(payload, dict) else None
            if not isinstance(request_id, (str, int)) or isinstance(
                request_id, bool
            ):
                logger.warning("Dropping envelope without a usable id")
                return None
            error = InvalidRequestError("invalid request envelope")
            return error_response(request_id, error.code, error.message)

        return await self.call(request)

    async def call(self, request: RpcRequest) -> dict[str, Any]:
        """Invoke the handler for a parsed request."""
        handler = self.methods.get(request.method)
        if handler is None:
            logger.warning(
                f"Unknown method {request.method!r}",
                extra={"request_id": request.id},
            )
            missing = MethodNotFoundError(request.method)
            return error_response(request.id, missing.code, missing.message)

        logger.debug(
            f"Dispatching {request.method} (id={request.id})",
            extra={"request_id": request.id, "method": request.method},
        )
        try:
            result = await handler(request.params)
        except ValidationError as e:
            invalid = InvalidParamsError(_validation_summary(e))
            return error_response(request.id, invalid.code, invalid.message)
        except RpcError as e:
            return error_response(request.id, e.code, e.message)
        except ScrollbackException as e:
            logger.info(f"{request.method} failed: {e.message}")
            return error_response(request.id, RpcError.code, e.message)
        except Exception as e:
            logger.exception(
                f"Handler for {request.method} raised",
                extra={"request_id": request.id},
            )
            return error_response(request.id, RpcError.code, str(e) or type(e).__name__)
        return success_response(request.id, result)
