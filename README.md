# tokenvm

`tokenvm` holds the state of a small token ledger: native and custom assets,
per-account balances, trading orders, and loans that record assets exported
to other chains. It also has a JSON-RPC request handler and a client for
querying that state.

It uses only the standard library.

## Installing

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Modules

- `tokenvm.storage` stores records in a key-value database under fixed
  binary keys, each starting with a one-byte prefix: balances (`0x0`),
  assets (`0x1`), orders (`0x2`), loans (`0x3`), the height key (`0x4`),
  incoming warp messages (`0x5`) and outgoing warp messages (`0x6`).
  Transaction outcomes use their own key (`0x0` followed by the transaction
  ID) and are meant for a separate database. Amounts are big-endian unsigned
  64-bit integers; an asset's metadata length is a 16-bit prefix.
  `MemoryDatabase` is an in-memory store with `get_value` (raises
  `NotFoundError` for a missing key), `insert`, `remove` and `read_state`.
- `tokenvm.address` formats a 32-byte public key as a bech32 address with
  `address(public_key, hrp)` and parses it back with
  `parse_address(text, hrp)`. A malformed address, or one with another prefix,
  raises `AddressError` (a `ValueError`).
- `tokenvm.ids` converts 32-byte identifiers to and from their checksummed
  base58 text form with `encode_id` and `decode_id`. `EMPTY_ID` is the all-zero
  identifier, which names the native asset.
- `tokenvm.server` provides `JSONRPCServer` and the `Controller` protocol it
  reads state from.
- `tokenvm.client` provides `JSONRPCClient` and the result types `TxStatus`,
  `AssetStatus` and `Parser`; service errors are raised as `RPCError`.
- `tokenvm.errors` defines the exceptions, all derived from `TokenVMError`:
  `NotFoundError`, `InvalidBalanceError`, `TxNotFoundError` and
  `AssetNotFoundError`.
- `tokenvm.version` has `Semantic` and `VERSION`; `str(VERSION)` is
  `"v0.0.1"`.

## Balances and loans

A balance that has never been set reads as zero. Adding beyond the 64-bit
range, or subtracting more than is held, raises `InvalidBalanceError`. When a
subtraction leaves exactly zero the record is removed instead of stored. Loans
(`add_loan`, `sub_loan`, `get_loan`, `set_loan`) behave the same way.

```python
from tokenvm.errors import InvalidBalanceError
from tokenvm.ids import EMPTY_ID
from tokenvm.storage import MemoryDatabase, add_balance, get_balance, sub_balance

db = MemoryDatabase()
owner = bytes(range(32))   # a 32-byte public key

add_balance(db, owner, EMPTY_ID, 1_000, "token")
sub_balance(db, owner, EMPTY_ID, 400, "token")
print(get_balance(db, owner, EMPTY_ID))   # 600

try:
    sub_balance(db, owner, EMPTY_ID, 10_000, "token")
except InvalidBalanceError as exc:
    print(exc)
```

The optional last argument of `add_balance` and `sub_balance` is the address
prefix used to name the account in the error message; without it the public
key is shown in hex.

## Transactions, assets and orders

`store_transaction` and `get_transaction` keep a transaction's timestamp,
success flag and units; `get_transaction` returns a `TransactionInfo` or
`None`. `set_asset` stores an asset's metadata, supply, owner and warp flag,
and `get_asset` returns an `AssetInfo` or `None`. `set_order`, `get_order`
(an `OrderInfo` or `None`) and `delete_order` manage an order's input and
output assets, ticks, remaining supply and owner.

`get_balance_from_state`, `get_asset_from_state` and `get_loan_from_state`
take a batch reader, such as `MemoryDatabase.read_state`, in place of the
database.

## The JSON-RPC service

`JSONRPCServer(controller, hrp, namespace="tokenvm")` answers the methods
`tokenvm.genesis`, `tokenvm.tx`, `tokenvm.asset`, `tokenvm.balance`,
`tokenvm.orders` and `tokenvm.loan`. `handle(request)` takes one JSON-RPC 2.0
request, as a mapping or as JSON text, and returns the response object.
Identifiers travel as `encode_id` text and bytes as base64. At most 128 orders
are returned for a pair. An unknown transaction or asset is reported with the
messages `tx not found` and `asset not found`.

`JSONRPCClient(uri, chain_id)` posts requests to `uri + "/tokenapi"` over
HTTP. A `transport` callable `(url, body) -> bytes` can replace HTTP, which
lets the client talk to a server in the same process:

```python
import json
from tokenvm.client import JSONRPCClient
from tokenvm.server import JSONRPCServer

server = JSONRPCServer(controller, "token")
client = JSONRPCClient(
    "http://localhost:9650",
    chain_id,
    transport=lambda url, body: json.dumps(server.handle(body)).encode(),
)
status = client.tx(tx_id)   # TxStatus(found=..., success=..., timestamp=...)
```

`tx` and `asset` report a missing transaction or asset through the `found` and
`exists` fields rather than raising. `genesis` is fetched once and cached.
`wait_for_balance` and `wait_for_transaction` poll until the condition holds
and raise `TimeoutError` when a `timeout` is given and runs out.

## What the package does not do

There is no ledger engine here: nothing executes transactions, builds blocks,
defines a genesis or keeps an order book. The `Controller` passed to
`JSONRPCServer` must supply genesis data, transaction outcomes, state reads and
orders. `JSONRPCServer` does not listen on a network port; hosting `handle`
behind an HTTP server is left to the caller. The package has no command-line
tool.