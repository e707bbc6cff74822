"""Blocking web3 reads run off the event loop, with primary/backup endpoint fallback."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from typing import TypeVar

import requests
from eth_typing import URI
from web3 import Web3
from web3.exceptions import Web3Exception

from .errors import SourceUnavailableError
from .logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# Failures that justify trying the next endpoint
RPC_ERRORS: tuple[type[BaseException], ...] = (
    requests.exceptions.RequestException,
    Web3Exception,
    OSError,
    ValueError,
)


class RpcClientPool:
    """One ``Web3`` client per endpoint URL, shared by the on-chain sources."""

    def __init__(self, request_timeout: float = 10.0):
        self._request_timeout = request_timeout
        self._clients: dict[str, Web3] = {}

    def web3(self, rpc_url: str) -> Web3:
        client = self._clients.get(rpc_url)
        if client is None:
            client = Web3(
                Web3.HTTPProvider(
                    URI(rpc_url), request_kwargs={"timeout": self._request_timeout}
                )
            )
            self._clients[rpc_url] = client
        return client

    async def call(
        self,
        chain: str,
        endpoints: Sequence[str],
        read: Callable[[Web3], T],
        what: str,
    ) -> T:
        """Run ``read`` against each endpoint in order until one succeeds.

        Raises:
            SourceUnavailableError: If every endpoint fails
        """
        if not endpoints:
            raise SourceUnavailableError(f"No RPC endpoint configured for {chain}")

        errors: list[str] = []
        for rpc_url in endpoints:
            try:
                return await asyncio.to_thread(read, self.web3(rpc_url))
            except RPC_ERRORS as e:
                logger.warning("%s on %s failed via %s: %s", what, chain, rpc_url, e)
                errors.append(f"{rpc_url}: {e}")

        raise SourceUnavailableError(
            f"{what} failed on {chain} via all endpoints: {'; '.join(errors)}"
        )
