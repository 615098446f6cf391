import argparse
from typing import Optional

from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import LoadingIndicator

import storage.database
from api.checkout import pending_checkout
from storage.cart import CartNotice
from utils.config import load_config
from utils.logger import get_logger
from utils.messages import (
    CartChangedMessage,
    ModeSwitchedMessage,
    QuitRequestedMessage,
    UserLoginMessage,
    UserLogoutMessage,
)
from utils.state import GlobalState
from views.base_screen import BaseScreen
from views.scr_cart import CartScreen
from views.scr_catalog import CatalogScreen
from views.scr_payment_result import PaymentResultScreen

_logger = get_logger(__name__)


class StorefrontApp(App):
    BINDINGS = [
        Binding("ctrl+t", "switch_light", "Toggle Theme", show=True),
    ]

    MODES = {
        "catalog": CatalogScreen,
        "cart": CartScreen,
    }

    STORE_MODES = {
        "catalog": "Products",
        "cart": "Cart",
    }

    CSS_PATH = [
        "styles/index.tcss",
        "styles/catalog.tcss",
        "styles/cart.tcss",
        "styles/dialog.tcss",
    ]

    state: GlobalState

    def __init__(self, state: Optional[GlobalState] = None, payment_result: Optional[str] = None):
        super().__init__()
        self.state = state or GlobalState()
        self.payment_result = payment_result
        storage.database.DB_PATH = self.state.config.db_path

    def compose(self) -> ComposeResult:
        yield LoadingIndicator()

    async def on_mount(self) -> None:
        self.main_flow()

    def action_switch_light(self):
        if self.theme == "textual-dark":
            self.theme = "solarized-light"
        else:
            self.theme = "textual-dark"
        self.notify(f"Theme changed to {self.theme}")

    def _on_cart_notice(self, notice: CartNotice) -> None:
        self.notify(notice.message, timeout=notice.timeout)

    async def _refresh_sidebar(self) -> None:
        if isinstance(self.screen, BaseScreen) and self.screen.sidebar is not None:
            await self.screen.sidebar.refresh_info()

    @on(CartChangedMessage)
    def handle_cart_changed(self, message: CartChangedMessage):
        # app level messages do not reach screens, push the change down
        screen = self.screen
        if isinstance(screen, CartScreen):
            screen.refresh_cart()
        elif isinstance(screen, BaseScreen) and screen.sidebar is not None:
            screen.sidebar.update_cart_count(pulse=message.pulse)

    @on(ModeSwitchedMessage)
    def handle_mode_switched(self, message: ModeSwitchedMessage):
        _logger.debug(f"Mode switched: {message.old_mode} -> {message.new_mode}")

    @on(UserLoginMessage)
    async def handle_user_login(self):
        await self._refresh_sidebar()

    @on(UserLogoutMessage)
    @work
    async def handle_user_logout(self):
        await self.state.end_session()
        self.notify("Signed out.")
        await self._refresh_sidebar()

    @on(QuitRequestedMessage)
    def handle_quit(self):
        self.exit()

    @work
    async def main_flow(self):
        await self.state.restore()
        self.state.cart.on_notify(self._on_cart_notice)

        self.post_message(ModeSwitchedMessage(self.current_mode, "catalog"))
        await self.switch_mode("catalog")

        if self.payment_result:
            await self.push_screen_wait(PaymentResultScreen(self.payment_result))
            await self._refresh_sidebar()
            return

        marker = await pending_checkout()
        if marker is not None:
            self.notify(
                "A previous checkout was not completed. Your cart has been kept.",
                severity="warning",
                timeout=10,
            )


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="diplostore", description="Diplostore terminal storefront")
    parser.add_argument(
        "--payment-result",
        choices=["success", "cancel"],
        help="show the payment outcome page after returning from the payment gateway",
    )
    parser.add_argument("--env-file", help="read configuration from this .env file")
    return parser.parse_args(argv)


def main(argv=None) -> None:
    args = parse_args(argv)
    state = GlobalState(config=load_config(args.env_file))
    app = StorefrontApp(state, payment_result=args.payment_result)
    app.run()


if __name__ == "__main__":
    main()
