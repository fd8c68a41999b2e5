"""Token ledger state storage, bech32 addresses, identifiers and a JSON-RPC query service and client."""

__version__ = "0.0.1"