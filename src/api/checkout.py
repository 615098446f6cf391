# hands the cart off to the payment backend and follows its redirect
from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Callable, Optional, Sequence

import httpx

from api.errors import CheckoutError, InvalidInputError
from storage import local
from storage.models import CartItem, CheckoutLine, CheckoutMarker, CheckoutRequest
from utils.config import StoreConfig
from utils.logger import get_logger
from utils.money import CENT

_logger = get_logger(__name__)

CHECKOUT_ERROR_MESSAGE = "Could not start the payment. Please try again."


class CheckoutState(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    REDIRECTING = "redirecting"
    FAILED = "failed"


def build_checkout_request(
    items: Sequence[CartItem],
    token: Optional[str],
    currency: str,
    when: Optional[datetime] = None,
) -> CheckoutRequest:
    """Serialize cart lines and token into the checkout body, prices as numbers."""
    when = when or datetime.now(timezone.utc)
    total = sum((item.line_total for item in items), Decimal("0"))
    return CheckoutRequest(
        token=token,
        items=[
            CheckoutLine(
                id=item.id,
                name=item.name,
                price=float(item.unit_price),
                quantity=item.quantity,
                image=item.image,
                category=item.category,
            )
            for item in items
        ],
        total=float(total.quantize(CENT)),
        currency=currency,
        timestamp=when.isoformat(),
    )


class CheckoutInitiator:
    """
    Idle -> Submitting -> Redirecting | Failed; Failed falls back to Idle.

    Never touches the cart itself: the cart is only cleared once the payment
    flow reports success.
    """

    def __init__(
        self,
        config: StoreConfig,
        navigate: Callable[[str], None],
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.config = config
        self.navigate = navigate
        self.client = client or httpx.AsyncClient(
            base_url=config.backend_api_url,
            timeout=config.http_timeout,
            headers={"Content-Type": "application/json"},
        )
        self.state = CheckoutState.IDLE
        self.error: Optional[str] = None

    async def close(self) -> None:
        await self.client.aclose()

    async def start(self, items: Sequence[CartItem], token: Optional[str]) -> str:
        """
        Submit the cart and open the payment page.

        Returns the redirect url. Raises InvalidInputError for an empty cart
        (no request is made) and CheckoutError for any backend failure.
        """
        if not items:
            raise InvalidInputError("Your cart is empty.", field="cart")
        if self.state in (CheckoutState.SUBMITTING, CheckoutState.REDIRECTING):
            raise CheckoutError("A checkout is already in progress.")

        self.state = CheckoutState.SUBMITTING
        self.error = None
        request = build_checkout_request(items, token, self.config.currency)

        try:
            url = await self._submit(request)
        except CheckoutError as e:
            # FAILED behaves like IDLE for the next start()
            self.state = CheckoutState.FAILED
            self.error = e.message
            _logger.error(f"Checkout failed: {e.__cause__ or e}")
            raise

        marker = CheckoutMarker(cart=list(items), timestamp=request.timestamp, url=url)
        try:
            await local.set_item(local.CHECKOUT_MARKER_KEY, marker.model_dump_json())
        except (sqlite3.Error, OSError) as e:
            self.state = CheckoutState.FAILED
            self.error = CHECKOUT_ERROR_MESSAGE
            _logger.error(f"Could not save the checkout marker: {e}")
            raise CheckoutError(CHECKOUT_ERROR_MESSAGE) from e

        self.state = CheckoutState.REDIRECTING
        _logger.info(f"Redirecting to payment: {url}")
        self.navigate(url)
        return url

    async def _submit(self, request: CheckoutRequest) -> str:
        _logger.info(
            f"Submitting checkout: {len(request.items)} line(s), "
            f"total {request.total} {request.currency}"
        )
        try:
            response = await self.client.post(
                "/checkout", json=request.model_dump(mode="json")
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise CheckoutError(CHECKOUT_ERROR_MESSAGE) from e

        url = None
        if isinstance(data, dict):
            url = data.get("checkout_url") or data.get("url")
        if not url:
            raise CheckoutError(CHECKOUT_ERROR_MESSAGE)
        return url


async def pending_checkout() -> Optional[CheckoutMarker]:
    """The checkout-in-progress marker, if one was left behind."""
    raw = await local.get_item(local.CHECKOUT_MARKER_KEY)
    if raw is None:
        return None
    try:
        return CheckoutMarker.model_validate_json(raw)
    except ValueError as e:
        _logger.error(f"Discarding unreadable checkout marker: {e}")
        await local.remove_item(local.CHECKOUT_MARKER_KEY)
        return None
