"""HTTP transport for the Cognito JSON APIs."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from pymaveo._constants import AMZ_JSON_CONTENT_TYPE
from pymaveo.exceptions import MaveoTransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by the handshake calls.

    Having a protocol here makes it easy to pass test doubles while
    keeping the production implementation (`CognitoTransport`) concrete.
    """

    async def post_json(self, url: str, target: str, body: Mapping[str, Any]) -> dict[str, Any]:
        ...


class CognitoTransport:
    """Posts ``application/x-amz-json-1.1`` requests to Cognito endpoints.

    An externally supplied ``aiohttp.ClientSession`` is used as-is and never
    closed here.  Without one, a session is created on first use and
    released by :meth:`close`.
    """

    def __init__(
        self,
        http_session: aiohttp.ClientSession | None = None,
        *,
        timeout: float = 30.0,
    ) -> None:
        self._http = http_session
        self._owns_session = http_session is None
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    def _session(self) -> aiohttp.ClientSession:
        if self._http is None or self._http.closed:
            self._http = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._http

    async def close(self) -> None:
        """Close the HTTP session if this transport created it."""
        if self._owns_session and self._http is not None and not self._http.closed:
            await self._http.close()
        if self._owns_session:
            self._http = None

    async def post_json(self, url: str, target: str, body: Mapping[str, Any]) -> dict[str, Any]:
        """POST *body* to *url* as the Cognito operation *target*.

        Returns the decoded JSON object.  A non-2xx status raises
        :class:`MaveoTransportError` carrying the full response body.
        """
        headers = {
            "content-type": AMZ_JSON_CONTENT_TYPE,
            "x-amz-target": target,
        }
        operation = target.rsplit(".", 1)[-1]

        _logger.debug("POST %s target=%s", url, operation)

        try:
            async with self._session().post(
                url,
                data=json.dumps(body),
                headers=headers,
                timeout=self._timeout,
            ) as resp:
                text = await resp.text()
                if not 200 <= resp.status < 300:
                    raise MaveoTransportError(
                        text,
                        status_code=resp.status,
                        endpoint=operation,
                    )
        except MaveoTransportError:
            raise
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise MaveoTransportError(
                f"Request to {operation} failed: {exc!r}",
                endpoint=operation,
            ) from exc

        try:
            result = json.loads(text)
        except json.JSONDecodeError as exc:
            raise MaveoTransportError(
                f"Invalid JSON from {operation}: {text[:200]}",
                status_code=resp.status,
                endpoint=operation,
            ) from exc

        if not isinstance(result, dict):
            raise MaveoTransportError(
                f"Response from {operation} is not a JSON object",
                status_code=resp.status,
                endpoint=operation,
            )
        return result
