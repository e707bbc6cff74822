from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from chainspread.rpc import RpcClientPool


class FakeRpc(RpcClientPool):
    """Hands out preconfigured web3 mocks instead of HTTP clients.

    Endpoints without a mock behave as unreachable.
    """

    def __init__(self, clients: dict[str, MagicMock]):
        super().__init__()
        self.clients = clients

    def web3(self, rpc_url: str) -> MagicMock:
        return self.clients.setdefault(rpc_url, _unreachable())


def _unreachable() -> MagicMock:
    w3 = MagicMock()
    w3.eth.contract.side_effect = ConnectionError("unreachable")
    return w3


def _function(w3: MagicMock, method: str) -> MagicMock:
    return getattr(w3.eth.contract.return_value.functions, method)


@pytest.fixture
def make_w3():
    """Web3 mock whose contract ``method().call()`` returns ``value`` or raises ``error``."""

    def _make(
        method: str | None = None, value=None, error: Exception | None = None
    ) -> MagicMock:
        w3 = MagicMock()
        if method is not None:
            call = _function(w3, method).return_value.call
            if error is not None:
                call.side_effect = error
            else:
                call.return_value = value
        return w3

    return _make


@pytest.fixture
def call_count():
    def _count(w3: MagicMock, method: str) -> int:
        return _function(w3, method).return_value.call.call_count

    return _count


@pytest.fixture
def fake_rpc():
    return FakeRpc


@pytest.fixture
def fake_http() -> MagicMock:
    http = MagicMock()
    http.get_json = AsyncMock()
    http.post_json = AsyncMock()
    return http
