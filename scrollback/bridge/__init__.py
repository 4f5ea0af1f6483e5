"""RPC bridge: WebSocket transport, dispatch and method table."""

from scrollback.bridge.connection import BridgeConnection, ConnectionState
from scrollback.bridge.dispatch import Dispatcher
from scrollback.bridge.envelope import RpcRequest, error_response, success_response
from scrollback.bridge.methods import METHOD_ALIASES, BridgeMethods

__all__ = [
    "METHOD_ALIASES",
    "BridgeConnection",
    "BridgeMethods",
    "ConnectionState",
    "Dispatcher",
    "RpcRequest",
    "error_response",
    "success_response",
]
