from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from api.account import AccountClient, stored_token
from api.errors import StorefrontError
from storage import local
from storage.cart import CartStore
from utils.config import StoreConfig, load_config
from utils.logger import get_logger

_logger = get_logger(__name__)


@dataclass
class GlobalState:
    """
    Centralized application state shared by screens.

    Fields:
      - config: injected service configuration
      - cart: the one cart store, hydrated at startup
      - token: auth token from the local store, None when signed out
      - user: profile returned by the backend for ``token``
    """

    config: StoreConfig = field(default_factory=load_config)
    cart: CartStore = field(default_factory=CartStore)
    token: Optional[str] = None
    user: Optional[Dict[str, Any]] = None

    @property
    def signed_in(self) -> bool:
        return self.user is not None

    @property
    def display_name(self) -> str:
        if not self.user:
            return "Guest"
        name = " ".join(
            part for part in (self.user.get("first_name"), self.user.get("last_name")) if part
        )
        return name or self.user.get("email") or "User"

    async def restore(self) -> None:
        """Hydrate the cart and the signed-in user once, at startup."""
        await self.cart.hydrate()
        self.token = await stored_token()
        if not self.token:
            return

        try:
            self.user = await local.get_json(local.USER_KEY)
        except ValueError:
            self.user = None

        account = AccountClient(self.config)
        try:
            self.user = await account.fetch_user(self.token) or self.user
        except StorefrontError as e:
            _logger.warning(f"Could not refresh user data: {e.message}")
            if not await stored_token():
                self.token = None
                self.user = None
        finally:
            await account.close()

    async def end_session(self) -> None:
        account = AccountClient(self.config)
        try:
            await account.logout()
        finally:
            await account.close()
        self.token = None
        self.user = None
