"""JSON-over-HTTP helper shared by the hosted API sources."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import backoff
import requests

from .constants import RETRYABLE_STATUS_CODES
from .errors import MalformedResponseError, SourceUnavailableError

logger = logging.getLogger(__name__)


def is_permanent_http_error(e: Exception) -> bool:
    """Give up on HTTP errors whose status code will not change on retry."""
    return (
        isinstance(e, requests.exceptions.HTTPError)
        and e.response is not None
        and e.response.status_code not in RETRYABLE_STATUS_CODES
    )


class JsonHttpClient:
    """Blocking ``requests`` calls run in a worker thread, retried with backoff.

    Transport errors and retryable status codes are retried up to
    ``retry_limit`` attempts in total. Whatever is left after that surfaces
    as ``SourceUnavailableError``; an unparseable body as
    ``MalformedResponseError``.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        retry_limit: int = 3,
        session: requests.Session | None = None,
    ):
        self.timeout = timeout
        self.retry_limit = retry_limit
        self._session = session or requests.Session()
        self._send_with_retry = backoff.on_exception(
            backoff.expo,
            requests.exceptions.RequestException,
            max_tries=retry_limit,
            giveup=is_permanent_http_error,
            jitter=backoff.full_jitter,
        )(self._send)

    async def _send(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        logger.debug(f"Calling {method} {url}")
        response = await asyncio.to_thread(
            self._session.request, method, url, timeout=self.timeout, **kwargs
        )
        response.raise_for_status()
        return response

    async def request_json(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            response = await self._send_with_retry(method, url, **kwargs)
        except requests.exceptions.RequestException as e:
            raise SourceUnavailableError(f"{method} {url} failed: {e}") from e

        try:
            return response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise MalformedResponseError(f"Invalid JSON from {url}") from e

    async def get_json(self, url: str, **kwargs: Any) -> Any:
        return await self.request_json("GET", url, **kwargs)

    async def post_json(self, url: str, payload: Any, **kwargs: Any) -> Any:
        return await self.request_json("POST", url, json=payload, **kwargs)
