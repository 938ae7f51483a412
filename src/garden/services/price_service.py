"""NCTR/USD price feed with DexScreener and CoinGecko sources.

Sources are tried in order; the first one that returns a price wins. When
every source fails the last known estimate is returned so portfolio values
and checkout pricing keep working.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional, Union

import httpx
import structlog

from garden.config import settings

log = structlog.get_logger()

FALLBACK_PRICE_USD = 0.00125
PRICE_CACHE_KEY = "nctr:price:current"
PRICE_CACHE_TTL = 30

DEXSCREENER_URL = "https://api.dexscreener.com/latest/dex/tokens/{address}"
COINGECKO_URL = "https://api.coingecko.com/api/v3/simple/token_price/base"


@dataclass
class NctrPrice:
    price_usd: float
    source: str
    last_updated: str
    price_change_24h: Optional[float] = None


class PriceFeedError(Exception):
    """Raised when a single price source cannot produce a price."""


class PriceFeedClient:
    """Fetches the current NCTR price, optionally caching it in Redis."""

    def __init__(self, contract_address: str | None = None, redis=None, timeout: float = 10.0):
        self.contract_address = contract_address or settings.NCTR_CONTRACT_ADDRESS
        self.redis = redis
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_current_price(self) -> NctrPrice:
        cached = await self._read_cache()
        if cached is not None:
            return cached

        for fetch in (self._fetch_dexscreener, self._fetch_coingecko):
            try:
                price = await fetch()
            except PriceFeedError as exc:
                log.warning("price_source_failed", error=str(exc))
                continue
            await self._write_cache(price)
            return price

        log.warning("price_fallback_used", price_usd=FALLBACK_PRICE_USD)
        return NctrPrice(
            price_usd=FALLBACK_PRICE_USD,
            source="fallback",
            last_updated=datetime.now(timezone.utc).isoformat(),
        )

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    async def _get_json(self, url: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout)) as client:
                response = await client.get(url, params=params, headers={"Accept": "application/json"})
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as exc:
            raise PriceFeedError(f"{url}: {exc}") from exc
        except ValueError as exc:
            raise PriceFeedError(f"{url}: response is not JSON") from exc
        if not isinstance(data, dict):
            raise PriceFeedError(f"{url}: unexpected response shape")
        return data

    async def _fetch_dexscreener(self) -> NctrPrice:
        data = await self._get_json(DEXSCREENER_URL.format(address=self.contract_address))
        pairs = data.get("pairs") or []
        if not pairs:
            raise PriceFeedError("No trading pairs found on DexScreener")

        best = max(pairs, key=lambda pair: (pair.get("liquidity") or {}).get("usd") or 0)
        try:
            price = float(best["priceUsd"])
        except (KeyError, TypeError, ValueError) as exc:
            raise PriceFeedError("DexScreener pair has no USD price") from exc

        change = (best.get("priceChange") or {}).get("h24")
        return NctrPrice(
            price_usd=price,
            source="dexscreener",
            last_updated=datetime.now(timezone.utc).isoformat(),
            price_change_24h=float(change) if change is not None else None,
        )

    async def _fetch_coingecko(self) -> NctrPrice:
        data = await self._get_json(
            COINGECKO_URL,
            params={
                "contract_addresses": self.contract_address,
                "vs_currencies": "usd",
                "include_24hr_change": "true",
            },
        )
        token = data.get(self.contract_address.lower())
        if not token or "usd" not in token:
            raise PriceFeedError("Token not found on CoinGecko")

        return NctrPrice(
            price_usd=float(token["usd"]),
            source="coingecko",
            last_updated=datetime.now(timezone.utc).isoformat(),
            price_change_24h=token.get("usd_24h_change"),
        )

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    async def _read_cache(self) -> NctrPrice | None:
        if self.redis is None:
            return None
        try:
            raw = await self.redis.get(PRICE_CACHE_KEY)
        except Exception as exc:
            log.warning("price_cache_error", error=str(exc))
            return None
        if not raw:
            return None
        return NctrPrice(**json.loads(raw))

    async def _write_cache(self, price: NctrPrice) -> None:
        if self.redis is None:
            return
        try:
            await self.redis.set(PRICE_CACHE_KEY, json.dumps(asdict(price)), ex=PRICE_CACHE_TTL)
        except Exception as exc:
            log.warning("price_cache_error", error=str(exc))


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

Number = Union[int, float, Decimal]


def format_price(price: Number) -> str:
    """More decimals for smaller prices: 2 from $1, 4 from $0.01, else 8."""
    value = float(price)
    if value >= 1:
        return f"{value:.2f}"
    if value >= 0.01:
        return f"{value:.4f}"
    return f"{value:.8f}"


def format_change(change: Number | None) -> str:
    if not change:
        return "+0.00%"
    value = float(change)
    sign = "+" if value >= 0 else ""
    return f"{sign}{value:.2f}%"


def calculate_portfolio_value(nctr_amount: Number, price_usd: Number) -> float:
    if not price_usd or not nctr_amount:
        return 0.0
    return float(nctr_amount) * float(price_usd)
