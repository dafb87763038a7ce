"""Exception types raised by the feed and engine layers."""


class LedgerError(ValueError):
    """Base class for ledger and feed errors."""


class FeedParseError(LedgerError):
    """A feed payload could not be interpreted."""


class MalformedTimestamp(FeedParseError):
    """An action carried a timestamp that could not be parsed."""

    def __init__(self, transaction_id: str, raw_timestamp):
        self.transaction_id = transaction_id
        self.raw_timestamp = raw_timestamp
        super().__init__(f"Unparseable timestamp {raw_timestamp!r} on transaction {transaction_id}")


class TransientFetchFailure(LedgerError):
    """A page or snapshot request failed; the last good state stays in use."""
