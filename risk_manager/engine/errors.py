"""Failure taxonomy for the equity tracker.

Every per-account failure is caught at the account boundary and reported;
only RepositoryListError aborts a whole scan.
"""


class EquityTrackerError(Exception):
    """Base class for errors raised while tracking equity."""


class ConfigurationMissingError(EquityTrackerError):
    """No time config or adapter exists for an account's broker type."""


class TimezoneResolutionError(EquityTrackerError):
    """A broker type's configured IANA timezone cannot be loaded."""


class UnsupportedBrokerError(EquityTrackerError):
    """An adapter was requested for a broker type that has no implementation."""


class AdapterFetchError(EquityTrackerError):
    """A broker call failed; retried naturally on the next qualifying tick."""


class BrokerRequestError(AdapterFetchError):
    """The HTTP request could not be made or completed."""


class BrokerStatusError(AdapterFetchError):
    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"unexpected status code: {status_code}, body: {body}")


class BrokerDecodeError(AdapterFetchError):
    """The response body is not JSON of the expected shape."""


class BrokerParseError(AdapterFetchError):
    """A broker-specific numeric field could not be parsed."""


class PersistenceError(EquityTrackerError):
    """A fetched sample could not be durably recorded."""


class RepositoryListError(EquityTrackerError):
    """Active accounts could not be enumerated at all."""
