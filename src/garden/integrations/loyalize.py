"""Loyalize affiliate network API client.

Usage:
    from garden.integrations.loyalize import LoyalizeClient

    client = LoyalizeClient()
    transactions = await client.get_transactions(size=50)
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import httpx

from garden.config import settings


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass
class LoyalizeTransaction:
    """A single cashback transaction reported by Loyalize."""

    id: int
    sid: Optional[str]
    store_id: Optional[int]
    store_name: str
    order_number: Optional[str]
    status: str
    sale_amount: Decimal
    shopper_commission: Decimal
    purchase_date: Optional[str] = None

    @property
    def commissionable(self) -> bool:
        return self.status != "NON_COMMISSIONABLE"


class LoyalizeAPIError(Exception):
    """Raised when the Loyalize API is unreachable or returns an error."""


def _to_decimal(value: Any) -> Decimal:
    try:
        return Decimal(str(value)) if value not in (None, "") else Decimal("0")
    except InvalidOperation:
        return Decimal("0")


def parse_transaction(raw: dict[str, Any]) -> LoyalizeTransaction:
    return LoyalizeTransaction(
        id=raw["id"],
        sid=raw.get("sid"),
        store_id=raw.get("storeId"),
        store_name=raw.get("storeName") or "",
        order_number=raw.get("orderNumber"),
        status=raw.get("status") or "PENDING",
        sale_amount=_to_decimal(raw.get("saleAmount")),
        shopper_commission=_to_decimal(raw.get("shopperCommission")),
        purchase_date=raw.get("purchaseDate"),
    )


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class LoyalizeClient:
    """Async client for the Loyalize v2 REST API."""

    def __init__(self, api_key: str | None = None, base_url: str | None = None, timeout: float = 30.0):
        self.api_key = api_key if api_key is not None else settings.LOYALIZE_API_KEY
        self.base_url = (base_url or settings.LOYALIZE_API_URL).rstrip("/")
        self.timeout = timeout

    async def get_transactions(self, page: int = 0, size: int = 50) -> list[LoyalizeTransaction]:
        """Fetch the most recent transactions, newest first.

        Raises:
            LoyalizeAPIError: on missing credentials, transport failure, or a
                non-2xx response.
        """
        if not self.api_key:
            raise LoyalizeAPIError("LOYALIZE_API_KEY is not configured")

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
            ) as client:
                response = await client.get(
                    "/v2/transactions",
                    params={"size": size, "page": page, "sort": "purchaseDate,desc"},
                    headers={"Authorization": self.api_key, "Content-Type": "application/json"},
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as exc:
            raise LoyalizeAPIError(
                f"Loyalize API error: {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise LoyalizeAPIError(f"Cannot reach Loyalize at {self.base_url}") from exc
        except ValueError as exc:
            raise LoyalizeAPIError("Loyalize returned a non-JSON response") from exc

        if not isinstance(data, dict):
            raise LoyalizeAPIError("Loyalize returned an unexpected response shape")
        return [parse_transaction(raw) for raw in data.get("content") or []]
