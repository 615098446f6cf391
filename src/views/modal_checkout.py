from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Label, MarkdownViewer

from api.checkout import CheckoutInitiator, CheckoutState
from api.errors import CheckoutError, InvalidInputError
from utils.money import format_price
from utils.pure import generate_markdown_table


class CheckoutModal(ModalScreen[bool]):
    """
    Order summary and hand-off to the payment page.
    Returns True once the payment page was opened. The cart is kept until
    the payment result comes back.
    """

    def compose(self) -> ComposeResult:
        with Vertical():
            yield MarkdownViewer("", show_table_of_contents=False)
            yield Label("", id="label-checkout-status")
            with Horizontal():
                yield Button("Go Back", id="btn-quit")
                yield Button("Proceed to Payment", id="btn-submit", variant="primary")

    async def on_mount(self):
        cart = self.app.state.cart
        headers = ["Product Name", "Unit Price", "Quantity", "Total Price"]
        rows = [
            [item.name, format_price(item.unit_price), item.quantity, format_price(item.line_total)]
            for item in cart.items
        ]
        aligns = ["l", "c", "c", "c"]
        header_md = "### Order Summary\n\n"
        md = generate_markdown_table(headers, rows, aligns)
        md += f"\n\n**Subtotal:** {format_price(cart.total_price())}"
        if not self.app.state.signed_in:
            md += "\n\n_Checking out as guest._"
        await self.query_one(MarkdownViewer).document.update(header_md + md)
        self.query_one("#btn-submit").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(False)

    @on(Button.Pressed, "#btn-submit")
    @work(exclusive=True)
    async def handle_submit(self):
        state = self.app.state
        btn = self.query_one("#btn-submit", Button)
        status = self.query_one("#label-checkout-status", Label)

        btn.disabled = True
        btn.label = "Processing..."
        status.update("")

        initiator = CheckoutInitiator(state.config, navigate=self.app.open_url)
        try:
            url = await initiator.start(state.cart.items, state.token)
        except InvalidInputError as e:
            self.notify(e.message, severity="warning")
            self.dismiss(False)
            return
        except CheckoutError as e:
            status.update(f"[red]{e.message}[/red]")
            self.notify(e.message, severity="error")
            btn.disabled = False
            btn.label = "Proceed to Payment"
            return
        finally:
            await initiator.close()

        if initiator.state == CheckoutState.REDIRECTING:
            self.notify(f"Payment page opened: {url}", timeout=10)
        self.dismiss(True)

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(False)
