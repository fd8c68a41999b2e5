"""Client for the token VM JSON-RPC service."""

from __future__ import annotations

import base64
import itertools
import json
import logging
import time
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any, Callable

from tokenvm.errors import AssetNotFoundError, TokenVMError, TxNotFoundError
from tokenvm.ids import encode_id
from tokenvm.server import DEFAULT_NAMESPACE, JSONRPC_ENDPOINT

logger = logging.getLogger(__name__)

Transport = Callable[[str, bytes], bytes]

_HTTP_TIMEOUT = 30.0


def _http_transport(url: str, body: bytes) -> bytes:
    request = urllib.request.Request(
        url, data=body, headers={"Content-Type": "application/json"}, method="POST"
    )
    try:
        with urllib.request.urlopen(request, timeout=_HTTP_TIMEOUT) as response:
            return response.read()
    except urllib.error.HTTPError as exc:
        payload = exc.read()
        if payload:
            return payload
        raise


class RPCError(TokenVMError):
    """The service answered with an error."""

    message = "rpc error"

    def __init__(self, code: int, detail: str) -> None:
        self.code = code
        super().__init__(detail)


@dataclass(frozen=True)
class TxStatus:
    found: bool
    success: bool
    timestamp: int


@dataclass(frozen=True)
class AssetStatus:
    exists: bool
    metadata: bytes
    supply: int
    owner: str
    warp: bool


@dataclass(frozen=True)
class Parser:
    """Chain identity and genesis needed to parse chain data."""

    chain_id: bytes
    genesis: Any


class JSONRPCClient:
    """Queries a token VM node."""

    def __init__(
        self,
        uri: str,
        chain_id: bytes,
        *,
        name: str = DEFAULT_NAMESPACE,
        transport: Transport | None = None,
        poll_interval: float = 0.5,
    ) -> None:
        self.uri = uri.removesuffix("/") + JSONRPC_ENDPOINT
        self.chain_id = bytes(chain_id)
        self._name = name
        self._transport = transport or _http_transport
        self._poll_interval = poll_interval
        self._ids = itertools.count(1)
        self._genesis: Any = None

    def _call(self, method: str, params: dict[str, Any] | None) -> dict[str, Any]:
        body = json.dumps(
            {
                "jsonrpc": "2.0",
                "method": f"{self._name}.{method}",
                "params": params,
                "id": next(self._ids),
            }
        ).encode("utf-8")
        raw = self._transport(self.uri, body)
        try:
            response = json.loads(raw)
        except ValueError as exc:
            raise RPCError(0, f"malformed response: {exc}") from None
        error = response.get("error")
        if error:
            raise RPCError(error.get("code", 0), str(error.get("message", "")))
        return response.get("result") or {}

    def genesis(self) -> Any:
        if self._genesis is None:
            self._genesis = self._call("genesis", None).get("genesis")
        return self._genesis

    def tx(self, tx_id: bytes) -> TxStatus:
        try:
            result = self._call("tx", {"txId": encode_id(tx_id)})
        except RPCError as exc:
            # Errors arrive as text, so the not-found case is matched by message.
            if TxNotFoundError.message in str(exc):
                return TxStatus(False, False, -1)
            raise
        return TxStatus(True, bool(result.get("success")), int(result.get("timestamp", 0)))

    def asset(self, asset: bytes) -> AssetStatus:
        try:
            result = self._call("asset", {"asset": encode_id(asset)})
        except RPCError as exc:
            if AssetNotFoundError.message in str(exc):
                return AssetStatus(False, b"", 0, "", False)
            raise
        metadata = result.get("metadata")
        return AssetStatus(
            True,
            base64.b64decode(metadata) if metadata else b"",
            int(result.get("supply", 0)),
            str(result.get("owner", "")),
            bool(result.get("warp")),
        )

    def balance(self, address: str, asset: bytes) -> int:
        result = self._call("balance", {"address": address, "asset": encode_id(asset)})
        return int(result.get("amount", 0))

    def orders(self, pair: str) -> list[Any]:
        return list(self._call("orders", {"pair": pair}).get("orders") or [])

    def loan(self, asset: bytes, destination: bytes) -> int:
        result = self._call(
            "loan", {"asset": encode_id(asset), "destination": encode_id(destination)}
        )
        return int(result.get("amount", 0))

    def _wait(self, check: Callable[[], bool], timeout: float | None) -> None:
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            if check():
                return
            if deadline is not None and time.monotonic() >= deadline:
                raise TimeoutError("deadline exceeded while waiting")
            time.sleep(self._poll_interval)

    def wait_for_balance(
        self, address: str, asset: bytes, minimum: int, timeout: float | None = None
    ) -> None:
        """Block until the address holds at least ``minimum`` of the asset."""

        def check() -> bool:
            if self.balance(address, asset) >= minimum:
                return True
            logger.info("waiting for %d balance: %s", minimum, address)
            return False

        self._wait(check, timeout)

    def wait_for_transaction(self, tx_id: bytes, timeout: float | None = None) -> bool:
        """Block until the transaction is known and return whether it succeeded."""
        outcome: list[bool] = []

        def check() -> bool:
            status = self.tx(tx_id)
            outcome[:] = [status.success]
            return status.found

        self._wait(check, timeout)
        return outcome[0]

    def parser(self) -> Parser:
        return Parser(self.chain_id, self.genesis())