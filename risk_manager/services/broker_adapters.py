"""Broker adapters: one authenticated account-status call per broker.

Each adapter hides a broker's auth scheme and response shape behind
``get_equity``, which returns the account equity as a Decimal.
"""

import json
import logging
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

import httpx

from risk_manager.config import BrokerCredentials, BrokersConfig
from risk_manager.engine.errors import (
    BrokerDecodeError,
    BrokerParseError,
    BrokerRequestError,
    BrokerStatusError,
    UnsupportedBrokerError,
)

logger = logging.getLogger(__name__)


class BrokerType(str, Enum):
    OANDA = "OANDA"
    MT5_FTMO = "MT5_FTMO"


class BrokerAdapter(ABC):
    """Uniform equity capability over all supported brokers."""

    broker_type: BrokerType

    def __init__(
        self,
        client: httpx.AsyncClient,
        credentials: BrokerCredentials,
        log: logging.Logger | None = None,
    ):
        self.client = client
        self.api_key = credentials.api_key
        self.base_url = credentials.base_url.rstrip("/")
        self.log = log or logger

    @abstractmethod
    async def get_equity(self, account_id: str) -> Decimal:
        """Return the current equity of the broker account."""

    async def _get_json(self, url: str, headers: dict[str, str]) -> Any:
        """GET a URL and decode its JSON body, mapping failures to adapter errors."""
        self.log.debug(f"[{self.broker_type.value}] GET {url}")
        try:
            response = await self.client.get(url, headers=headers)
        except httpx.HTTPError as e:
            raise BrokerRequestError(f"error executing request: {e}") from e

        if response.status_code != httpx.codes.OK:
            raise BrokerStatusError(response.status_code, response.text)

        try:
            # Money never goes through float
            return json.loads(response.text, parse_float=Decimal)
        except ValueError as e:
            raise BrokerDecodeError(f"error decoding response: {e}") from e


class OandaAdapter(BrokerAdapter):
    broker_type = BrokerType.OANDA

    async def get_equity(self, account_id: str) -> Decimal:
        url = f"{self.base_url}/v3/accounts/{account_id}"
        headers = {"Authorization": f"Bearer {self.api_key}"}

        body = await self._get_json(url, headers)
        try:
            nav = body["account"]["NAV"]
        except (KeyError, TypeError) as e:
            raise BrokerDecodeError(f"missing account.NAV in response: {e!r}") from e

        # OANDA encodes numbers as strings
        try:
            equity = Decimal(str(nav))
        except InvalidOperation as e:
            raise BrokerParseError(f"error parsing equity {nav!r}") from e
        if not equity.is_finite():
            raise BrokerParseError(f"error parsing equity {nav!r}")
        return equity


class MT5Adapter(BrokerAdapter):
    broker_type = BrokerType.MT5_FTMO

    async def get_equity(self, account_id: str) -> Decimal:
        url = f"{self.base_url}/accounts/{account_id}"
        headers = {"x-api-key": self.api_key}

        body = await self._get_json(url, headers)
        try:
            equity = body["equity"]
        except (KeyError, TypeError) as e:
            raise BrokerDecodeError(f"missing equity in response: {e!r}") from e

        if isinstance(equity, bool) or not isinstance(equity, (int, Decimal)):
            raise BrokerParseError(f"equity is not numeric: {equity!r}")
        return Decimal(equity)


_ADAPTERS: dict[BrokerType, tuple[type[BrokerAdapter], str]] = {
    BrokerType.OANDA: (OandaAdapter, "oanda"),
    BrokerType.MT5_FTMO: (MT5Adapter, "mt5"),
}


def new_adapter(
    broker_type: str,
    brokers: BrokersConfig,
    client: httpx.AsyncClient,
    log: logging.Logger | None = None,
) -> BrokerAdapter:
    """Build the adapter for a broker type tag.

    Raises:
        UnsupportedBrokerError: The tag names no known broker.
    """
    try:
        kind = BrokerType(broker_type)
    except ValueError:
        raise UnsupportedBrokerError(f"unsupported broker type: {broker_type}") from None

    adapter_cls, config_field = _ADAPTERS[kind]
    return adapter_cls(client, getattr(brokers, config_field), log=log)


def build_adapters(
    brokers: BrokersConfig,
    client: httpx.AsyncClient,
    log: logging.Logger | None = None,
) -> dict[str, BrokerAdapter]:
    """Build one adapter per broker type that has credentials configured."""
    adapters: dict[str, BrokerAdapter] = {}
    for kind, (_, config_field) in _ADAPTERS.items():
        credentials: BrokerCredentials = getattr(brokers, config_field)
        if not credentials.is_configured:
            logger.warning(f"No credentials configured for {kind.value}; its accounts will be skipped")
            continue
        adapters[kind.value] = new_adapter(kind.value, brokers, client, log=log)
    return adapters
