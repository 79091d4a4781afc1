"""Fetch command - HTTP requests on behalf of the caller.

Arguments:
    method   HTTP method (required)
    url      Target URL (required)
    headers  Request headers; entries whose value is not a string are ignored
    body     Any JSON value, sent JSON-encoded
    stream   False (default): one buffered envelope with the upstream response
             True: SSE stream of start / data... / [error] / end events

Buffered mode decodes the upstream body when it is declared as JSON and passes
it through as text otherwise. Streaming mode reads the upstream body
incrementally and tries to decode each chunk on its own; chunks that are not
complete JSON values are sent as text. Chunks are cut where the bytes happen
to arrive, so a JSON document spanning several chunks is delivered as text
pieces and a fragment may occasionally decode by accident.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import (
    BaseModel,
    Field,
    StrictBool,
    StrictStr,
    ValidationError,
    ValidationInfo,
    field_validator,
)

from ..config import DEFAULT_CHUNK_SIZE
from ..errors import (
    InvalidArgumentError,
    UpstreamBodyMalformedError,
    UpstreamUnreachableError,
)
from ..protocol.events import StreamEventType
from .registry import Command, CommandRegistry

if TYPE_CHECKING:
    from ..transport import ResponseTransport

logger = logging.getLogger(__name__)


# =============================================================================
# Argument model
# =============================================================================


class FetchParams(BaseModel):
    """Validated fetch arguments."""

    method: StrictStr = Field(min_length=1)
    url: StrictStr
    headers: dict[str, Any] = Field(default_factory=dict)
    body: Any = None
    stream: StrictBool = False

    @field_validator("headers", "stream", mode="before")
    @classmethod
    def null_is_default(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return {} if info.field_name == "headers" else False
        return value

    @field_validator("headers")
    @classmethod
    def string_values_only(cls, value: dict[str, Any]) -> dict[str, Any]:
        dropped = [key for key, item in value.items() if not isinstance(item, str)]
        if dropped:
            logger.debug(f"Ignoring non-string header values: {dropped}")
        return {key: item for key, item in value.items() if isinstance(item, str)}

    @classmethod
    def from_args(cls, args: dict[str, Any]) -> FetchParams:
        """Extract fetch parameters, raising InvalidArgumentError on bad input."""
        try:
            return cls.model_validate(args)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in err['loc']) or 'args'}: {err['msg']}"
                for err in e.errors()
            )
            raise InvalidArgumentError(f"invalid fetch arguments: {problems}") from e

    def encoded_body(self) -> bytes | None:
        """JSON-encode the body, or None when there is no body."""
        if self.body is None:
            return None
        try:
            return json.dumps(self.body).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise InvalidArgumentError(f"failed to encode body: {e}") from e


# =============================================================================
# Content helpers
# =============================================================================


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid JSON literal: {name}")


def decode_json(data: bytes) -> Any:
    """Strict JSON decode (no NaN/Infinity); raises ValueError."""
    return json.loads(data, parse_constant=_reject_constant)


def decode_text(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def decode_chunk(chunk: bytes) -> Any:
    """Decoded JSON value if the chunk is one on its own, else its text."""
    try:
        return decode_json(chunk)
    except ValueError:
        return decode_text(chunk)


def is_json_content_type(content_type: str | None) -> bool:
    """True for application/json and +json media types, parameters ignored."""
    if not content_type:
        return False
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


def header_multimap(headers: httpx.Headers) -> dict[str, list[str]]:
    """Headers as name -> values, keeping the upstream's casing and order."""
    result: dict[str, list[str]] = {}
    for raw_name, raw_value in headers.raw:
        name = raw_name.decode(headers.encoding)
        result.setdefault(name, []).append(raw_value.decode(headers.encoding))
    return result


def _describe(error: Exception) -> str:
    return str(error) or type(error).__name__


# =============================================================================
# Command
# =============================================================================


class FetchCommand(Command):
    """Proxies one HTTP request and adapts the response to the transport.

    Args:
        client: Shared client for outbound requests. When omitted, a client
                is created for each request.
        chunk_size: Largest slice of upstream bytes sent as one data event
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        self._client = client
        self._chunk_size = chunk_size

    async def execute(self, args: dict[str, Any], transport: ResponseTransport) -> None:
        params = FetchParams.from_args(args)
        content = params.encoded_body()

        if self._client is not None:
            await self._fetch(self._client, params, content, transport)
            return

        # No timeout: a slow upstream holds the request open.
        async with httpx.AsyncClient(timeout=None) as client:
            await self._fetch(client, params, content, transport)

    async def _fetch(
        self,
        client: httpx.AsyncClient,
        params: FetchParams,
        content: bytes | None,
        transport: ResponseTransport,
    ) -> None:
        try:
            request = client.build_request(
                params.method,
                params.url,
                content=content,
                headers=params.headers,
            )
        except (httpx.InvalidURL, ValueError) as e:
            raise InvalidArgumentError(f"failed to create request: {e}") from e

        logger.debug(f"fetch {request.method} {request.url} (stream={params.stream})")

        try:
            response = await client.send(request, stream=True, follow_redirects=True)
        except httpx.HTTPError as e:
            raise UpstreamUnreachableError(f"request failed: {_describe(e)}") from e

        try:
            if params.stream:
                await self._stream_response(response, transport)
            else:
                await self._buffer_response(response, transport)
        finally:
            await response.aclose()

    async def _buffer_response(
        self,
        response: httpx.Response,
        transport: ResponseTransport,
    ) -> None:
        try:
            raw = await response.aread()
        except httpx.HTTPError as e:
            raise UpstreamUnreachableError(
                f"failed to read response body: {_describe(e)}"
            ) from e

        body: Any
        if is_json_content_type(response.headers.get("content-type")):
            try:
                body = decode_json(raw)
            except ValueError as e:
                raise UpstreamBodyMalformedError(f"failed to parse JSON response: {e}") from e
        else:
            body = decode_text(raw)

        await transport.write_buffered(
            response.status_code,
            header_multimap(response.headers),
            body,
        )

    async def _stream_response(
        self,
        response: httpx.Response,
        transport: ResponseTransport,
    ) -> None:
        await transport.send_event(
            StreamEventType.START,
            {
                "statuscode": response.status_code,
                "headers": header_multimap(response.headers),
            },
        )

        try:
            async for chunk in self._iter_chunks(response):
                await transport.send_event(StreamEventType.DATA, decode_chunk(chunk))
        except httpx.HTTPError as e:
            # Headers are already sent; report in-band and close normally.
            logger.warning(f"Upstream read failed mid-stream: {_describe(e)}")
            await transport.send_event(StreamEventType.ERROR, {"error": _describe(e)})

        await transport.end_stream()

    async def _iter_chunks(self, response: httpx.Response) -> AsyncIterator[bytes]:
        """Upstream bytes as they arrive, in slices of at most chunk_size."""
        size = self._chunk_size
        async for piece in response.aiter_bytes():
            for start in range(0, len(piece), size):
                yield piece[start : start + size]


def register(
    registry: CommandRegistry,
    *,
    client: httpx.AsyncClient | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    **_options: Any,
) -> None:
    registry.register("fetch", FetchCommand(client=client, chunk_size=chunk_size))
