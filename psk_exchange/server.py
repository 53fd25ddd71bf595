"""HTTP JSON-RPC transport for the exchange server."""

import json
from typing import Any, Callable, Optional

import uvicorn
from fastapi import FastAPI
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import Response

from .types import KEX_METHOD, decode_messages, encode_messages
from .dispatcher import Dispatcher
from .metadata import remote_address_metadata
from .rpc import RPCError, RPCErrorCode, RPCRequest, RPCResponse, error_response
from .error import PskExchangeError
from .logger import get_logger

logger = get_logger(__name__)

MetaExtractor = Callable[[Request], Any]


class RequestTooLarge(Exception):
    def __init__(self, size: int):
        super().__init__(f"request body of at least {size} bytes")
        self.size = size


async def read_body(request: Request, limit: Optional[int]) -> bytes:
    """Read the request body, giving up as soon as it grows past ``limit`` bytes."""
    declared = request.headers.get("content-length")
    if limit is not None and declared is not None and declared.isdigit() and int(declared) > limit:
        raise RequestTooLarge(int(declared))

    chunks = []
    size = 0
    async for chunk in request.stream():
        size += len(chunk)
        if limit is not None and size > limit:
            raise RequestTooLarge(size)
        chunks.append(chunk)
    return b"".join(chunks)


def _json_response(response: RPCResponse) -> Response:
    return Response(content=response.to_json(), media_type="application/json")


def create_app(dispatcher: Dispatcher, meta_extractor: MetaExtractor = remote_address_metadata) -> FastAPI:
    """
    Build the ASGI app serving the ``kex`` JSON-RPC method on ``POST /``.

    ``meta_extractor`` is called once per request in the thread pool, before
    the body is read, and its result is handed unchanged to the dispatcher's sink.
    """
    from . import __version__

    app = FastAPI(title="psk-exchange", version=__version__, docs_url=None, redoc_url=None)
    app.state.dispatcher = dispatcher

    @app.post("/")
    async def rpc_endpoint(request: Request) -> Response:
        metadata = await run_in_threadpool(meta_extractor, request)

        try:
            body = await read_body(request, dispatcher.policy.max_request_bytes)
        except RequestTooLarge as e:
            logger.warning("Exchange rejected for %s: %s exceeds %s bytes",
                           metadata, e, dispatcher.policy.max_request_bytes)
            return _json_response(error_response(RPCError.internal()))

        try:
            data = json.loads(body)
        except (ValueError, RecursionError) as e:
            return _json_response(error_response(RPCError(RPCErrorCode.PARSE_ERROR, f"Parse error: {e}")))

        try:
            rpc_request = RPCRequest.from_dict(data)
        except RPCError as e:
            return _json_response(error_response(e))

        if rpc_request.method != KEX_METHOD:
            error = RPCError(RPCErrorCode.METHOD_NOT_FOUND, f"Method not found: {rpc_request.method}")
            return _json_response(error_response(error, rpc_request.id))

        try:
            params = rpc_request.params
            if not isinstance(params, list) or len(params) != 1:
                raise ValueError("kex takes exactly one parameter")
            messages = decode_messages(params[0])
            replies = await run_in_threadpool(dispatcher.handle, metadata, messages, len(body))
        except ValueError as e:
            logger.warning("Malformed kex request from %s: %s", metadata, e)
            return _json_response(error_response(RPCError.internal(), rpc_request.id))
        except PskExchangeError:
            # Already logged by the dispatcher
            return _json_response(error_response(RPCError.internal(), rpc_request.id))
        except Exception:
            logger.exception("Unexpected error during key exchange for %s", metadata)
            return _json_response(error_response(RPCError.internal(), rpc_request.id))

        return _json_response(RPCResponse(result=encode_messages(replies), id=rpc_request.id))

    return app


def run_server(app: FastAPI, host: str, port: int) -> None:
    """Serve ``app`` until interrupted."""
    logger.info("kex server listening on %s:%d", host, port)
    uvicorn.run(app, host=host, port=port, log_config=None)
