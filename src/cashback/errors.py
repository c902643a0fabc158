"""Exceptions raised by the cashback pipeline."""


class CashbackError(Exception):
    """Base class for cashback pipeline errors."""


class ConfigError(CashbackError):
    """A chain configuration file is missing fields or malformed."""


class IngestorError(CashbackError):
    """The block feed subscription was lost."""


class OperationError(CashbackError):
    """A daemon-side asynchronous operation did not produce a transaction."""

    def __init__(self, operation_id: str, message: str) -> None:
        self.operation_id = operation_id
        super().__init__(f"{operation_id}: {message}")


class OperationFailedError(OperationError):
    """The operation reached a terminal state without a txid."""


class OperationTimeoutError(OperationError):
    """The operation did not finish within the polling deadline."""


__all__ = [
    "CashbackError",
    "ConfigError",
    "IngestorError",
    "OperationError",
    "OperationFailedError",
    "OperationTimeoutError",
]
