"""JSON-RPC service exposing the token VM state."""

from __future__ import annotations

import base64
import dataclasses
import json
from collections.abc import Mapping, Sequence
from typing import Any, Callable, Protocol

from tokenvm.address import address as format_address
from tokenvm.address import parse_address
from tokenvm.errors import AssetNotFoundError, TxNotFoundError
from tokenvm.ids import EMPTY_ID, decode_id
from tokenvm.storage import AssetInfo, TransactionInfo

JSONRPC_ENDPOINT = "/tokenapi"
ORDERS_TO_SEND = 128
DEFAULT_NAMESPACE = "tokenvm"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
SERVER_ERROR = -32000


class Controller(Protocol):
    """What the RPC service needs from the running VM."""

    def genesis(self) -> Any: ...

    def get_transaction(self, tx_id: bytes) -> TransactionInfo | None: ...

    def get_asset_from_state(self, asset: bytes) -> AssetInfo | None: ...

    def get_balance_from_state(self, public_key: bytes, asset: bytes) -> int: ...

    def orders(self, pair: str, limit: int) -> Sequence[Any]: ...

    def get_loan_from_state(self, asset: bytes, destination: bytes) -> int: ...


class _RequestError(Exception):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code


def _decode_id_param(value: Any) -> bytes:
    if value is None:
        return EMPTY_ID
    if not isinstance(value, str):
        raise ValueError(f"identifier must be a string, got {type(value).__name__}")
    return decode_id(value)


def _decode_str_param(value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"expected a string, got {type(value).__name__}")
    return value


_Field = tuple[str, Callable[[Any], Any]]

_METHODS: dict[str, tuple[_Field, ...]] = {
    "genesis": (),
    "tx": (("txId", _decode_id_param),),
    "asset": (("asset", _decode_id_param),),
    "balance": (("address", _decode_str_param), ("asset", _decode_id_param)),
    "orders": (("pair", _decode_str_param),),
    "loan": (("asset", _decode_id_param), ("destination", _decode_id_param)),
}


def _to_wire(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _to_wire(dataclasses.asdict(value))
    if isinstance(value, Mapping):
        return {str(k): _to_wire(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_wire(item) for item in value]
    return value


class JSONRPCServer:
    """Answers token VM queries from a controller."""

    def __init__(self, controller: Controller, hrp: str, namespace: str = DEFAULT_NAMESPACE) -> None:
        self._controller = controller
        self._hrp = hrp
        self._namespace = namespace

    def genesis(self) -> dict[str, Any]:
        return {"genesis": self._controller.genesis()}

    def tx(self, tx_id: bytes) -> dict[str, Any]:
        info = self._controller.get_transaction(tx_id)
        if info is None:
            raise TxNotFoundError()
        return {"timestamp": info.timestamp, "success": info.success, "units": info.units}

    def asset(self, asset: bytes) -> dict[str, Any]:
        info = self._controller.get_asset_from_state(asset)
        if info is None:
            raise AssetNotFoundError()
        return {
            "metadata": info.metadata,
            "supply": info.supply,
            "owner": format_address(info.owner, self._hrp),
            "warp": info.warp,
        }

    def balance(self, address: str, asset: bytes) -> dict[str, Any]:
        public_key = parse_address(address, self._hrp)
        return {"amount": self._controller.get_balance_from_state(public_key, asset)}

    def orders(self, pair: str) -> dict[str, Any]:
        return {"orders": list(self._controller.orders(pair, ORDERS_TO_SEND))}

    def loan(self, asset: bytes, destination: bytes) -> dict[str, Any]:
        return {"amount": self._controller.get_loan_from_state(asset, destination)}

    def handle(self, request: Mapping[str, Any] | str | bytes) -> dict[str, Any]:
        """Serve one JSON-RPC 2.0 request and return the response object."""
        request_id = None
        try:
            if isinstance(request, (str, bytes, bytearray)):
                try:
                    request = json.loads(request)
                except ValueError as exc:
                    raise _RequestError(PARSE_ERROR, f"parse error: {exc}") from None
            if not isinstance(request, Mapping):
                raise _RequestError(INVALID_REQUEST, "invalid request")
            request_id = request.get("id")
            method = request.get("method")
            if not isinstance(method, str):
                raise _RequestError(INVALID_REQUEST, "missing method")
            name = self._method_name(method)
            if name is None:
                raise _RequestError(METHOD_NOT_FOUND, f"method not found: {method}")
            args = self._decode_params(request.get("params"), _METHODS[name])
            result = getattr(self, name)(*args)
        except _RequestError as exc:
            return self._error(request_id, exc.code, str(exc))
        except Exception as exc:  # every failure is reported to the caller
            return self._error(request_id, SERVER_ERROR, str(exc))
        return {"jsonrpc": "2.0", "result": _to_wire(result), "id": request_id}

    def _method_name(self, method: str) -> str | None:
        prefix = self._namespace + "."
        if not method.startswith(prefix):
            return None
        name = method[len(prefix) :]
        return name if name in _METHODS else None

    @staticmethod
    def _decode_params(params: Any, fields: tuple[_Field, ...]) -> list[Any]:
        if params is None:
            params = {}
        elif isinstance(params, list) and len(params) == 1:
            params = params[0]
        if not isinstance(params, Mapping):
            raise _RequestError(INVALID_PARAMS, "params must be an object")
        try:
            return [decode(params.get(key)) for key, decode in fields]
        except ValueError as exc:
            raise _RequestError(INVALID_PARAMS, f"invalid params: {exc}") from None

    @staticmethod
    def _error(request_id: Any, code: int, message: str) -> dict[str, Any]:
        return {"jsonrpc": "2.0", "error": {"code": code, "message": message}, "id": request_id}