from typing import Literal

from textual import on
from textual.app import ComposeResult
from textual.containers import Vertical
from textual.widgets import Button, Label

from utils.messages import CartChangedMessage
from views.base_screen import BaseScreen

PaymentResult = Literal["success", "cancel"]


class PaymentResultScreen(BaseScreen):
    """
    Landing page after the payment gateway.
    Only a successful payment empties the cart.
    """

    def __init__(self, result: PaymentResult):
        super().__init__()
        self.configure(header_sub_title="Payment", show_sidebar=False)
        self.result = result

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical(id="div-payment-result"):
            yield Label("", id="label-payment-title")
            yield Label("", id="label-payment-body")
            yield Button("Back to store", id="btn-back", variant="primary")

    async def on_mount(self):
        title = self.query_one("#label-payment-title", Label)
        body = self.query_one("#label-payment-body", Label)
        if self.result == "success":
            await self.app.state.cart.complete_checkout()
            self.app.post_message(CartChangedMessage())
            title.update("[b green]Payment successful[/]")
            body.update("Thank you for your order. A confirmation is on its way.")
        else:
            title.update("[b yellow]Payment cancelled[/]")
            body.update("No charge was made. Your cart is still here.")
        self.query_one("#btn-back").focus()

    @on(Button.Pressed, "#btn-back")
    def handle_back(self) -> None:
        self.dismiss()
