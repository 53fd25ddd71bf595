"""
JSON-RPC 2.0 envelope for the ``kex`` call.

Only the standard error codes are used. Anything that goes wrong while
performing the exchange itself is reported as INTERNAL_ERROR with a fixed
message, so a client learns nothing about which rule or step failed.
"""

import json
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, List, Optional, Union


JSONRPC_VERSION = "2.0"


class RPCErrorCode(IntEnum):
    """Standard JSON-RPC 2.0 error codes."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INTERNAL_ERROR = -32603


@dataclass
class RPCError(Exception):
    """JSON-RPC error."""

    code: int
    message: str

    def to_dict(self) -> dict:
        return {"code": int(self.code), "message": self.message}

    @classmethod
    def internal(cls) -> "RPCError":
        return cls(RPCErrorCode.INTERNAL_ERROR, "Internal error")


@dataclass
class RPCRequest:
    """JSON-RPC request."""

    method: str
    params: Union[List, Dict, None]
    id: Union[str, int, None]
    jsonrpc: str = JSONRPC_VERSION

    @classmethod
    def from_dict(cls, data: Any) -> "RPCRequest":
        """Parse a request object, raises RPCError if it is not one."""
        if not isinstance(data, dict):
            raise RPCError(RPCErrorCode.INVALID_REQUEST, "Invalid request")
        request = cls(
            jsonrpc=data.get("jsonrpc", ""),
            method=data.get("method", ""),
            params=data.get("params"),
            id=data.get("id"),
        )
        if request.jsonrpc != JSONRPC_VERSION:
            raise RPCError(RPCErrorCode.INVALID_REQUEST, "Invalid JSON-RPC version")
        if not isinstance(request.method, str) or not request.method:
            raise RPCError(RPCErrorCode.INVALID_REQUEST, "Missing method")
        return request

    def to_dict(self) -> dict:
        request = {"jsonrpc": self.jsonrpc, "method": self.method, "id": self.id}
        if self.params is not None:
            request["params"] = self.params
        return request


@dataclass
class RPCResponse:
    """JSON-RPC response."""

    result: Optional[Any] = None
    error: Optional[Dict] = None
    id: Union[str, int, None] = None
    jsonrpc: str = JSONRPC_VERSION

    def to_dict(self) -> dict:
        response = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            response["error"] = self.error
        else:
            response["result"] = self.result
        return response

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Any) -> "RPCResponse":
        """Parse a response object, raises ValueError if it is not one."""
        if not isinstance(data, dict) or data.get("jsonrpc") != JSONRPC_VERSION:
            raise ValueError("Not a JSON-RPC 2.0 response")
        if ("result" in data) == ("error" in data):
            raise ValueError("Response must hold exactly one of result and error")
        error = data.get("error")
        if error is not None and not (isinstance(error, dict) and isinstance(error.get("code"), int)):
            raise ValueError("Invalid error object")
        return cls(result=data.get("result"), error=error, id=data.get("id"))


def error_response(error: RPCError, request_id: Union[str, int, None] = None) -> RPCResponse:
    return RPCResponse(error=error.to_dict(), id=request_id)
