"""
ASGI middleware applied to every request before it reaches the routers.

Outermost first, as installed by `create_app`:

1. RequestLogMiddleware - one log line per request
2. CORSMiddleware (Starlette) - answers real preflights
3. SecurityHeadersMiddleware - fixed headers, answers bare OPTIONS
4. BodyLimitMiddleware - size caps and strict JSON validation
5. ErrorNormalizerMiddleware - turns unhandled exceptions into 500 responses

These run outside FastAPI's exception middleware, so a stage that rejects a
request writes the error response itself instead of raising. Unhandled
errors are answered by the innermost stage, so their responses still pass
back out through the header and CORS stages.
"""
import json
import logging
import time
from dataclasses import dataclass
from typing import Optional

from starlette.datastructures import Headers, MutableHeaders
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from .config import CorsPolicy
from .errors import MalformedBodyError, PayloadTooLargeError, error_response

logger = logging.getLogger(__name__)

JSON_MEDIA_TYPE = "application/json"
FORM_MEDIA_TYPE = "application/x-www-form-urlencoded"
MULTIPART_MEDIA_TYPE = "multipart/form-data"

# Text of the unhandled error a request ended with, read back by the request log
REQUEST_ERROR_KEY = "report_api.error"


@dataclass(frozen=True)
class RequestLogRecord:
    method: str
    path: str
    status_code: int
    duration_ms: int
    error: Optional[str] = None

    def __str__(self) -> str:
        line = f"{self.method} {self.path} {self.status_code} {self.duration_ms}ms"
        if self.error is not None:
            line += f" - Error: {self.error}"
        return line


def _request_path(scope: Scope) -> str:
    path = scope["path"]
    query = scope.get("query_string", b"")
    if query:
        path += "?" + query.decode("latin-1")
    return path


class RequestLogMiddleware:
    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start = time.perf_counter()
        status_code = 500

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        def record(error: Optional[str] = None) -> RequestLogRecord:
            duration_ms = max(0, int((time.perf_counter() - start) * 1000))
            return RequestLogRecord(scope["method"], _request_path(scope), status_code, duration_ms, error)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            entry = record(error=str(exc))
            logger.error(str(entry), extra={"request_log": entry})
            raise

        error = scope.get(REQUEST_ERROR_KEY)
        if error is not None and status_code >= 500:
            entry = record(error=error)
            logger.error(str(entry), extra={"request_log": entry})
        else:
            entry = record()
            logger.info(str(entry), extra={"request_log": entry})


class SecurityHeadersMiddleware:
    """
    Adds the security headers and the method/header allow-lists to every
    response. A bare OPTIONS request (one that CORSMiddleware did not treat as
    a preflight) is answered with 204 here and never reaches a router.
    """

    def __init__(self, app: ASGIApp, policy: CorsPolicy) -> None:
        self.app = app
        self.headers = {
            "Access-Control-Allow-Methods": ",".join(policy.allow_methods),
            "Access-Control-Allow-Headers": ", ".join(policy.allow_headers),
            "X-Content-Type-Options": "nosniff",
            "X-Frame-Options": "DENY",
            "X-XSS-Protection": "1; mode=block",
        }

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        if scope["method"] == "OPTIONS":
            response = Response(status_code=204, headers=self.headers)
            await response(scope, receive, send)
            return

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                for name, value in self.headers.items():
                    headers[name] = value
            await send(message)

        await self.app(scope, receive, send_wrapper)


class BodyLimitMiddleware:
    """
    Reads JSON and url-encoded bodies up front, rejecting them when they are
    larger than `max_body_bytes` (413) or, for JSON, when they do not parse
    (400). Accepted bodies are replayed unchanged to the application.

    Multipart uploads are not buffered here. They are counted while the
    application reads them, and the request is answered with 413 as soon as
    it passes `max_upload_bytes`, before the rest of the upload is received.
    Other content types pass straight through.
    """

    def __init__(self, app: ASGIApp, max_body_bytes: int, max_upload_bytes: Optional[int] = None) -> None:
        self.app = app
        self.max_body_bytes = max_body_bytes
        self.max_upload_bytes = max_upload_bytes if max_upload_bytes is not None else max_body_bytes

    @staticmethod
    def _media_type(headers: Headers) -> str:
        return headers.get("content-type", "").split(";")[0].strip().lower()

    @staticmethod
    def _is_json(media_type: str) -> bool:
        return media_type == JSON_MEDIA_TYPE or media_type.endswith("+json")

    @staticmethod
    def _declared_length(headers: Headers) -> Optional[int]:
        declared = headers.get("content-length")
        if declared is not None and declared.isdigit():
            return int(declared)
        return None

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        media_type = self._media_type(headers)
        if media_type == MULTIPART_MEDIA_TYPE:
            await self._stream_upload(scope, receive, send, self._declared_length(headers))
            return
        if not (self._is_json(media_type) or media_type == FORM_MEDIA_TYPE):
            await self.app(scope, receive, send)
            return

        too_large = PayloadTooLargeError(f"request entity too large (limit {self.max_body_bytes} bytes)")

        declared = self._declared_length(headers)
        if declared is not None and declared > self.max_body_bytes:
            await error_response(too_large)(scope, receive, send)
            return

        body = bytearray()
        more_body = True
        while more_body:
            message = await receive()
            if message["type"] == "http.disconnect":
                return
            body.extend(message.get("body", b""))
            if len(body) > self.max_body_bytes:
                await error_response(too_large)(scope, receive, send)
                return
            more_body = message.get("more_body", False)

        if self._is_json(media_type) and body.strip():
            try:
                json.loads(body)
            except ValueError as exc:
                await error_response(MalformedBodyError(str(exc)))(scope, receive, send)
                return

        replayed = False

        async def replay() -> Message:
            nonlocal replayed
            if not replayed:
                replayed = True
                return {"type": "http.request", "body": bytes(body), "more_body": False}
            return await receive()

        await self.app(scope, replay, send)

    async def _stream_upload(self, scope: Scope, receive: Receive, send: Send, declared: Optional[int]) -> None:
        too_large = PayloadTooLargeError(
            f"upload too large (limit {self.max_upload_bytes} bytes)", message="File too large"
        )
        if declared is not None and declared > self.max_upload_bytes:
            await error_response(too_large)(scope, receive, send)
            return

        received = 0
        rejected = False

        async def limited_receive() -> Message:
            nonlocal received, rejected
            if rejected:
                return {"type": "http.disconnect"}
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_upload_bytes:
                    rejected = True
                    await error_response(too_large)(scope, receive, send)
                    # The form parser sees a disconnect and stops reading
                    return {"type": "http.disconnect"}
            return message

        async def guarded_send(message: Message) -> None:
            # Once the 413 is out, whatever the application answers is dropped
            if not rejected:
                await send(message)

        await self.app(scope, limited_receive, guarded_send)


class ErrorNormalizerMiddleware:
    """
    Terminal error handler. Any exception the routers let through is logged
    and answered with the 500 error body; it is never re-raised to the server.
    """

    def __init__(self, app: ASGIApp, include_stack: bool) -> None:
        self.app = app
        self.include_stack = include_stack

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            scope[REQUEST_ERROR_KEY] = str(exc)
            if response_started:
                logger.error(f"Error after the response started: {exc!r}", exc_info=exc)
                return
            logger.error(f"Global error handler caught: {exc!r}", exc_info=exc)
            await error_response(exc, include_stack=self.include_stack)(scope, receive, send)
