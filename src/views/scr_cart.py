from textual import on, work
from textual.app import ComposeResult
from textual.containers import Container, Horizontal, HorizontalGroup, VerticalScroll
from textual.events import ScreenResume
from textual.message import Message
from textual.widgets import Button, Label, Rule

from storage.models import CartItem
from utils.messages import CartChangedMessage
from utils.money import format_price
from views.base_screen import BaseScreen
from views.modal_checkout import CheckoutModal
from views.modal_dialog import DialogModal


class CartItemActionMessage(Message):
    bubble = True

    def __init__(self, item: CartItem, action: str) -> None:
        super().__init__()
        self.item = item
        self.action = action


class CartItemActionLabel(Label):
    def __init__(self, item: CartItem, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.item = item

    def action_dec(self):
        self.post_message(CartItemActionMessage(self.item, "dec"))

    def action_inc(self):
        self.post_message(CartItemActionMessage(self.item, "inc"))

    def action_remove(self):
        self.post_message(CartItemActionMessage(self.item, "remove"))


class CartItemWidget(HorizontalGroup):
    def __init__(self, item: CartItem):
        super().__init__()
        self.item = item

    def compose(self):
        item = self.item
        with Container(id="div-cart-item-group"):
            with Container(id="div-item"):
                yield Label(item.name, id="label-item-name", markup=False)
                yield Label(f"x{item.quantity}", id="label-item-qty")
                yield Label(format_price(item.unit_price), id="label-item-price")
                yield Label(format_price(item.line_total), id="label-item-total")
            with Container(id="div-actions"):
                yield CartItemActionLabel(item, "[@click=dec()] - [/]", id="link-item-dec")
                yield CartItemActionLabel(item, "[@click=inc()] + [/]", id="link-item-inc")
                yield CartItemActionLabel(
                    item, "[@click=remove()]Remove[/]", id="link-item-remove"
                )


class CartScreen(BaseScreen):
    """
    cart lines with quantity editing, plus checkout
    """

    def compose(self) -> ComposeResult:
        yield from super().compose()
        yield VerticalScroll(id="vertscroll-content")
        yield Label("Total: $0.00", id="label-cart-total")
        yield Rule(line_style="dashed")
        with Horizontal(id="hort-buttons"):
            yield Button("Clear Cart", id="btn-clear-cart")
            yield Button("Checkout", id="btn-checkout", variant="primary")

    def on_mount(self):
        self.refresh_cart()

    @on(ScreenResume)
    @on(CartChangedMessage)
    @work(exclusive=True, group="cart-render")  # exclusive, else duplicate rows
    async def refresh_cart(self):
        """
        Rebuild the item list from the cart store.
        Also called by the app when the cart changed on another screen.
        """
        cart = self.app.state.cart
        content = self.query_one("#vertscroll-content")
        await content.remove_children()
        await content.mount_all([CartItemWidget(item) for item in cart.items])

        if cart.is_empty():
            content.add_class("no-items")
        else:
            content.remove_class("no-items")

        self.query_one("#label-cart-total", Label).update(
            f"Total ({cart.total_items()} items): {format_price(cart.total_price())}"
        )
        if self.sidebar is not None:
            self.sidebar.update_cart_count()

    @on(CartItemActionMessage)
    @work()
    async def handle_item_action(self, message: CartItemActionMessage):
        cart = self.app.state.cart
        item = message.item

        if message.action == "inc":
            await cart.set_quantity(item.id, item.quantity + 1)
        elif message.action == "dec":
            await cart.set_quantity(item.id, item.quantity - 1)
        elif message.action == "remove":
            remove_confirmed = await self.app.push_screen_wait(
                DialogModal(
                    f"Remove {item.name} from cart?",
                    primary_text="Yes",
                    secondary_text="No",
                    tone="warning",
                )
            )
            if not remove_confirmed:
                return
            await cart.remove(item.id)
            self.notify("Item removed from cart.", severity="information")

        self.refresh_cart()

    @on(Button.Pressed, "#btn-clear-cart")
    @work()
    async def handle_clear_cart(self) -> None:
        cart = self.app.state.cart
        if cart.is_empty():
            self.app.notify("Your cart is empty.", severity="warning")
            return

        remove_confirmed = await self.app.push_screen_wait(
            DialogModal(
                "Do you really want to remove all items from cart?",
                primary_text="Yes",
                secondary_text="No",
                tone="error",
            )
        )
        if remove_confirmed:
            await cart.clear()
            self.refresh_cart()

    @on(Button.Pressed, "#btn-checkout")
    @work()
    async def handle_checkout(self) -> None:
        """
        Open up checkout screen
        """
        if self.app.state.cart.is_empty():
            self.app.notify("Your cart is empty.", severity="warning")
            return

        await self.app.push_screen_wait(CheckoutModal())
