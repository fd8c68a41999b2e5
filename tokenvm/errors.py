"""Exceptions raised by the token VM storage and RPC layers."""

from __future__ import annotations


class TokenVMError(Exception):
    """Base class for every error raised by this package."""

    message = "tokenvm error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail
        text = self.message if detail is None else f"{self.message}: {detail}"
        super().__init__(text)


class NotFoundError(TokenVMError, LookupError):
    """A key is missing from the database."""

    message = "not found"


class InvalidBalanceError(TokenVMError, ValueError):
    """A balance or loan update would overflow or underflow."""

    message = "invalid balance"


class TxNotFoundError(TokenVMError, LookupError):
    """The requested transaction is unknown."""

    message = "tx not found"


class AssetNotFoundError(TokenVMError, LookupError):
    """The requested asset is unknown."""

    message = "asset not found"