from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Label, LoadingIndicator, MarkdownViewer

from api.catalog import CatalogClient
from api.errors import FetchError
from storage.models import Product
from utils.pure import generate_markdown_table


class ProdDetailModal(ModalScreen[bool]):
    """
    prod detail, plus add to cart
    Will return true if cart changed, false if not
    """

    def __init__(self, catalog: CatalogClient, slug: str) -> None:
        super().__init__()

        self._catalog = catalog
        self._slug = slug

        self._prod: Product = None
        self._cart_changed = False

    def compose(self) -> ComposeResult:
        with Horizontal(id="hort-prod-detail"):
            yield LoadingIndicator(id="loading-detail")
            yield MarkdownViewer("", show_table_of_contents=False)
            with Vertical(id="div-detail-actions"):
                yield Label("", id="label-in-cart")
                with Horizontal():
                    yield Button("Go Back", id="btn-quit")
                    yield Button(
                        "Add to Cart", id="btn-addcart", variant="primary", disabled=True
                    )

    def on_mount(self):
        self.query_one(MarkdownViewer).display = False
        self.load_product()

    @work(exclusive=True)
    async def load_product(self):
        try:
            self._prod = await self._catalog.fetch_product(self._slug)
        except FetchError as e:
            self.query_one("#loading-detail").display = False
            self.notify(e.message, severity="error")
            self.query_one("#label-in-cart", Label).update("Product unavailable.")
            return

        prod = self._prod
        table_headers = ["Attribute", "Value"]
        table_align = ["l", "l"]
        table_rows = [
            ["Price", prod.price_label],
            ["Regular price", prod.regular_price_label],
            ["Category", prod.category],
            ["Availability", "In stock" if prod.in_stock else "Out of stock"],
        ]
        if prod.on_sale:
            table_rows.insert(1, ["Sale", "Yes"])
        md_table_str = generate_markdown_table(table_headers, table_rows, table_align)
        header_md = f"### {prod.name}\n\n"
        body_md = "\n\n".join(prod.description)

        viewer = self.query_one(MarkdownViewer)
        await viewer.document.update(header_md + md_table_str + "\n\n" + body_md)
        self.query_one("#loading-detail").display = False
        viewer.display = True

        order_btn = self.query_one("#btn-addcart", Button)
        if not prod.in_stock:
            order_btn.label = "Out of Stock"
            order_btn.variant = "warning"
        else:
            order_btn.disabled = False
            order_btn.focus()
        self._render_in_cart()

    def _render_in_cart(self) -> None:
        item = self.app.state.cart.get(self._prod.id)
        qty = item.quantity if item else 0
        self.query_one("#label-in-cart", Label).update(
            f"In cart: {qty}" if qty else "Not in cart"
        )

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(self._cart_changed)

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(self._cart_changed)

    @on(Button.Pressed, "#btn-addcart")
    @work(exclusive=True)
    async def handle_addcart(self):
        if self._prod is None or not self._prod.in_stock:
            return
        await self.app.state.cart.add(self._prod)
        self._cart_changed = True
        self._render_in_cart()
