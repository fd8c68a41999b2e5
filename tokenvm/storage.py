"""Key layout and value encoding of the token VM state."""

from __future__ import annotations

import struct
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Protocol

from tokenvm.address import PUBLIC_KEY_LEN, address
from tokenvm.errors import InvalidBalanceError, NotFoundError
from tokenvm.ids import ID_LEN, encode_id

_TX_PREFIX = 0x0

_BALANCE_PREFIX = 0x0
_ASSET_PREFIX = 0x1
_ORDER_PREFIX = 0x2
_LOAN_PREFIX = 0x3
_HEIGHT_PREFIX = 0x4
_INCOMING_WARP_PREFIX = 0x5
_OUTGOING_WARP_PREFIX = 0x6

_FAILURE_BYTE = 0x0
_SUCCESS_BYTE = 0x1

UINT64_MAX = 2**64 - 1
UINT16_MAX = 2**16 - 1

_TX_FORMAT = struct.Struct(">qBQ")
_U64 = struct.Struct(">Q")
_ORDER_FORMAT = struct.Struct(f">{ID_LEN}sQ{ID_LEN}sQQ{PUBLIC_KEY_LEN}s")
_ASSET_TAIL = struct.Struct(f">Q{PUBLIC_KEY_LEN}sB")

ReadState = Callable[[Sequence[bytes]], "list[bytes | None]"]


class _Database(Protocol):
    def get_value(self, key: bytes) -> bytes: ...

    def insert(self, key: bytes, value: bytes) -> None: ...

    def remove(self, key: bytes) -> None: ...


class MemoryDatabase:
    """A key-value store held in memory."""

    def __init__(self, items: Iterable[tuple[bytes, bytes]] = ()) -> None:
        self._data: dict[bytes, bytes] = {bytes(k): bytes(v) for k, v in items}

    def get_value(self, key: bytes) -> bytes:
        try:
            return self._data[bytes(key)]
        except KeyError:
            raise NotFoundError() from None

    def insert(self, key: bytes, value: bytes) -> None:
        self._data[bytes(key)] = bytes(value)

    def remove(self, key: bytes) -> None:
        self._data.pop(bytes(key), None)

    def read_state(self, keys: Sequence[bytes]) -> list[bytes | None]:
        """Return the value of each key, or None where it is missing."""
        return [self._data.get(bytes(key)) for key in keys]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, (bytes, bytearray)) and bytes(key) in self._data

    def __len__(self) -> int:
        return len(self._data)


@dataclass(frozen=True)
class TransactionInfo:
    timestamp: int
    success: bool
    units: int


@dataclass(frozen=True)
class AssetInfo:
    metadata: bytes
    supply: int
    owner: bytes
    warp: bool


@dataclass(frozen=True)
class OrderInfo:
    in_asset: bytes
    in_tick: int
    out_asset: bytes
    out_tick: int
    remaining: int
    owner: bytes


def _fixed(value: bytes, length: int, what: str) -> bytes:
    value = bytes(value)
    if len(value) != length:
        raise ValueError(f"{what} must be {length} bytes, got {len(value)}")
    return value


def _id(value: bytes) -> bytes:
    return _fixed(value, ID_LEN, "identifier")


def _pk(value: bytes) -> bytes:
    return _fixed(value, PUBLIC_KEY_LEN, "public key")


def _u64(value: int, what: str) -> int:
    if not 0 <= value <= UINT64_MAX:
        raise ValueError(f"{what} out of uint64 range: {value}")
    return value


def _fetch(db: _Database, key: bytes) -> bytes | None:
    try:
        return db.get_value(key)
    except NotFoundError:
        return None


def _fetch_state(read_state: ReadState, key: bytes) -> bytes | None:
    return read_state([key])[0]


def _describe_owner(public_key: bytes, hrp: str | None) -> str:
    return address(public_key, hrp) if hrp else public_key.hex()


# Transactions


def prefix_tx_key(tx_id: bytes) -> bytes:
    return bytes([_TX_PREFIX]) + _id(tx_id)


def store_transaction(db: _Database, tx_id: bytes, timestamp: int, success: bool, units: int) -> None:
    flag = _SUCCESS_BYTE if success else _FAILURE_BYTE
    value = _TX_FORMAT.pack(timestamp, flag, _u64(units, "units"))
    db.insert(prefix_tx_key(tx_id), value)


def get_transaction(db: _Database, tx_id: bytes) -> TransactionInfo | None:
    """Return the stored transaction outcome, or None if unknown."""
    value = _fetch(db, prefix_tx_key(tx_id))
    if value is None:
        return None
    timestamp, flag, units = _TX_FORMAT.unpack_from(value)
    return TransactionInfo(timestamp, flag != _FAILURE_BYTE, units)


# Balances


def prefix_balance_key(public_key: bytes, asset: bytes) -> bytes:
    return bytes([_BALANCE_PREFIX]) + _pk(public_key) + _id(asset)


def _decode_u64(value: bytes | None) -> int:
    return 0 if value is None else _U64.unpack_from(value)[0]


def get_balance(db: _Database, public_key: bytes, asset: bytes) -> int:
    """Return a balance; an account with no record holds 0."""
    return _decode_u64(_fetch(db, prefix_balance_key(public_key, asset)))


def get_balance_from_state(read_state: ReadState, public_key: bytes, asset: bytes) -> int:
    return _decode_u64(_fetch_state(read_state, prefix_balance_key(public_key, asset)))


def set_balance(db: _Database, public_key: bytes, asset: bytes, balance: int) -> None:
    db.insert(prefix_balance_key(public_key, asset), _U64.pack(_u64(balance, "balance")))


def delete_balance(db: _Database, public_key: bytes, asset: bytes) -> None:
    db.remove(prefix_balance_key(public_key, asset))


def add_balance(
    db: _Database, public_key: bytes, asset: bytes, amount: int, hrp: str | None = None
) -> None:
    key = prefix_balance_key(public_key, asset)
    balance = _decode_u64(_fetch(db, key))
    new_balance = balance + _u64(amount, "amount")
    if new_balance > UINT64_MAX:
        raise InvalidBalanceError(
            f"could not add balance (asset={encode_id(asset)}, bal={balance}, "
            f"addr={_describe_owner(public_key, hrp)}, amount={amount})"
        )
    db.insert(key, _U64.pack(new_balance))


def sub_balance(
    db: _Database, public_key: bytes, asset: bytes, amount: int, hrp: str | None = None
) -> None:
    key = prefix_balance_key(public_key, asset)
    balance = _decode_u64(_fetch(db, key))
    new_balance = balance - _u64(amount, "amount")
    if new_balance < 0:
        raise InvalidBalanceError(
            f"could not subtract balance (asset={encode_id(asset)}, bal={balance}, "
            f"addr={_describe_owner(public_key, hrp)}, amount={amount})"
        )
    if new_balance == 0:
        # An empty balance is removed rather than stored as zero.
        db.remove(key)
    else:
        db.insert(key, _U64.pack(new_balance))


# Assets


def prefix_asset_key(asset: bytes) -> bytes:
    return bytes([_ASSET_PREFIX]) + _id(asset)


def _decode_asset(value: bytes | None) -> AssetInfo | None:
    if value is None:
        return None
    (metadata_len,) = struct.unpack_from(">H", value)
    metadata = bytes(value[2 : 2 + metadata_len])
    supply, owner, warp = _ASSET_TAIL.unpack_from(value, 2 + metadata_len)
    return AssetInfo(metadata, supply, owner, warp == 0x1)


def get_asset_from_state(read_state: ReadState, asset: bytes) -> AssetInfo | None:
    return _decode_asset(_fetch_state(read_state, prefix_asset_key(asset)))


def get_asset(db: _Database, asset: bytes) -> AssetInfo | None:
    return _decode_asset(_fetch(db, prefix_asset_key(asset)))


def set_asset(
    db: _Database, asset: bytes, metadata: bytes, supply: int, owner: bytes, warp: bool
) -> None:
    metadata = bytes(metadata)
    if len(metadata) > UINT16_MAX:
        raise ValueError(f"metadata longer than {UINT16_MAX} bytes")
    value = (
        struct.pack(">H", len(metadata))
        + metadata
        + _ASSET_TAIL.pack(_u64(supply, "supply"), _pk(owner), 0x1 if warp else 0x0)
    )
    db.insert(prefix_asset_key(asset), value)


def delete_asset(db: _Database, asset: bytes) -> None:
    db.remove(prefix_asset_key(asset))


# Orders


def prefix_order_key(tx_id: bytes) -> bytes:
    return bytes([_ORDER_PREFIX]) + _id(tx_id)


def set_order(
    db: _Database,
    tx_id: bytes,
    in_asset: bytes,
    in_tick: int,
    out_asset: bytes,
    out_tick: int,
    supply: int,
    owner: bytes,
) -> None:
    value = _ORDER_FORMAT.pack(
        _id(in_asset),
        _u64(in_tick, "in tick"),
        _id(out_asset),
        _u64(out_tick, "out tick"),
        _u64(supply, "supply"),
        _pk(owner),
    )
    db.insert(prefix_order_key(tx_id), value)


def get_order(db: _Database, order: bytes) -> OrderInfo | None:
    value = _fetch(db, prefix_order_key(order))
    if value is None:
        return None
    return OrderInfo(*_ORDER_FORMAT.unpack_from(value))


def delete_order(db: _Database, order: bytes) -> None:
    db.remove(prefix_order_key(order))


# Loans


def prefix_loan_key(asset: bytes, destination: bytes) -> bytes:
    return bytes([_LOAN_PREFIX]) + _id(asset) + _id(destination)


def get_loan_from_state(read_state: ReadState, asset: bytes, destination: bytes) -> int:
    return _decode_u64(_fetch_state(read_state, prefix_loan_key(asset, destination)))


def get_loan(db: _Database, asset: bytes, destination: bytes) -> int:
    return _decode_u64(_fetch(db, prefix_loan_key(asset, destination)))


def set_loan(db: _Database, asset: bytes, destination: bytes, amount: int) -> None:
    db.insert(prefix_loan_key(asset, destination), _U64.pack(_u64(amount, "amount")))


def add_loan(db: _Database, asset: bytes, destination: bytes, amount: int) -> None:
    loan = get_loan(db, asset, destination)
    new_loan = loan + _u64(amount, "amount")
    if new_loan > UINT64_MAX:
        raise InvalidBalanceError(
            f"could not add loan (asset={encode_id(asset)}, "
            f"destination={encode_id(destination)}, amount={amount})"
        )
    set_loan(db, asset, destination, new_loan)


def sub_loan(db: _Database, asset: bytes, destination: bytes, amount: int) -> None:
    loan = get_loan(db, asset, destination)
    new_loan = loan - _u64(amount, "amount")
    if new_loan < 0:
        raise InvalidBalanceError(
            f"could not subtract loan (asset={encode_id(asset)}, "
            f"destination={encode_id(destination)}, amount={amount})"
        )
    if new_loan == 0:
        db.remove(prefix_loan_key(asset, destination))
    else:
        set_loan(db, asset, destination, new_loan)


# Other keys


def height_key() -> bytes:
    return bytes([_HEIGHT_PREFIX])


def incoming_warp_key_prefix(source_chain_id: bytes, msg_id: bytes) -> bytes:
    return bytes([_INCOMING_WARP_PREFIX]) + _id(source_chain_id) + _id(msg_id)


def outgoing_warp_key_prefix(tx_id: bytes) -> bytes:
    return bytes([_OUTGOING_WARP_PREFIX]) + _id(tx_id)