from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, HorizontalGroup, Vertical, VerticalScroll
from textual.message import Message
from textual.widgets import Button, Label, LoadingIndicator, OptionList, Select
from textual.widgets.option_list import Option

from api.catalog import CatalogClient, SortOption
from storage.models import Product
from utils.messages import CartChangedMessage
from utils.scroll import InfiniteScrollController
from views.base_screen import BaseScreen
from views.modal_prod_detail import ProdDetailModal


class ProductActionMessage(Message):
    bubble = True

    def __init__(self, product: Product, action: str) -> None:
        super().__init__()
        self.product = product
        self.action = action


class ProductActionLabel(Label):
    def __init__(self, product: Product, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.product = product

    def action_view(self):
        self.post_message(ProductActionMessage(self.product, "view"))

    def action_add(self):
        self.post_message(ProductActionMessage(self.product, "add"))


class ProductCard(HorizontalGroup):
    def __init__(self, product: Product):
        super().__init__()
        self.product = product

    def compose(self) -> ComposeResult:
        prod = self.product
        if prod.on_sale:
            price = f"[b]{prod.price_label}[/b]  [strike]{prod.regular_price_label}[/strike]"
        else:
            price = f"[b]{prod.price_label}[/b]"
        badges = [f"[reverse] {prod.category} [/reverse]"]
        if prod.on_sale:
            badges.append("[red]Sale[/red]")
        if not prod.in_stock:
            badges.append("[dim]Sold out[/dim]")

        with Vertical(id="div-card-info"):
            yield Label(prod.name, id="label-prod-name", markup=False)
            yield Label(price, id="label-prod-price")
            yield Label("  ".join(badges), id="label-prod-badges")
        with Vertical(id="div-card-actions"):
            yield ProductActionLabel(prod, "[@click=view()]Details[/]", id="link-view")
            if prod.in_stock:
                yield ProductActionLabel(prod, "[@click=add()]Add to cart[/]", id="link-add")


class CatalogScreen(BaseScreen):
    """
    Product listing: category facets, sort order, infinite scroll.
    The catalog client and scroll watcher live exactly as long as this screen.
    """

    BINDINGS = [
        Binding("r", "retry", "Retry", show=False),
    ]

    def __init__(self) -> None:
        super().__init__()
        self.catalog: CatalogClient | None = None
        self.scroll_watch: InfiniteScrollController | None = None

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Horizontal(id="hort-catalog"):
            with Vertical(id="div-filters"):
                yield Label("Categories", id="label-categories")
                yield OptionList(id="optlist-categories")
                yield Button("Clear filter", id="btn-clear-filter")
            with Vertical(id="div-listing"):
                with Horizontal(id="hort-listing-bar"):
                    yield Label("", id="label-status")
                    yield Select(
                        [(option.label, option.value) for option in SortOption],
                        value=SortOption.RELEVANCE.value,
                        allow_blank=False,
                        id="select-sort",
                    )
                with Horizontal(id="hort-error"):
                    yield Label("", id="label-error")
                    yield Button("Retry", id="btn-retry", variant="warning")
                yield LoadingIndicator(id="loading-initial")
                yield VerticalScroll(id="vertscroll-products")
                yield LoadingIndicator(id="loading-more")

    def on_mount(self) -> None:
        self.catalog = CatalogClient(self.app.state.config)
        self.scroll_watch = InfiniteScrollController(
            is_loading=lambda: self.catalog.is_loading,
            has_more=lambda: self.catalog.state.has_more,
            advance=self.load_more,
        )
        scroller = self.query_one("#vertscroll-products", VerticalScroll)
        self.watch(scroller, "scroll_y", self._on_scroll, init=False)

        self.query_one("#hort-error").display = False
        self.query_one("#btn-clear-filter").display = False
        self.query_one("#loading-more").display = False

        self.load_categories()
        self.reload()

    async def on_unmount(self) -> None:
        if self.scroll_watch is not None:
            self.scroll_watch.disconnect()
        if self.catalog is not None:
            await self.catalog.close()

    def on_resize(self) -> None:
        self._check_sentinel()

    # ---------------------------
    # Loading
    # ---------------------------

    @work(exclusive=True, group="categories")
    async def load_categories(self) -> None:
        facets = await self.catalog.load_categories()
        optlist = self.query_one("#optlist-categories", OptionList)
        optlist.clear_options()
        if not facets:
            optlist.add_option(Option("No categories", disabled=True))
            return
        optlist.add_options(
            [Option(f"{facet.name} ({facet.count})", id=facet.name) for facet in facets]
        )

    @work(exclusive=True, group="catalog")
    async def reload(self) -> None:
        """First page for the current filters; cancels any page load in flight."""
        self.scroll_watch.disconnect()
        await self.query_one("#vertscroll-products").remove_children()
        self.query_one("#loading-initial").display = True
        self._render_status()

        await self.catalog.fetch_page(1)
        await self._sync_cards()

    @work(group="catalog")
    async def load_more(self) -> None:
        self.query_one("#loading-more").display = True
        await self.catalog.load_next()
        await self._sync_cards()

    @work(exclusive=True, group="catalog")
    async def action_retry(self) -> None:
        await self.catalog.retry()
        await self._sync_cards()

    async def _sync_cards(self) -> None:
        scroller = self.query_one("#vertscroll-products", VerticalScroll)
        products = self.catalog.state.products
        rendered = [card.product.id for card in scroller.query(ProductCard)]

        if [p.id for p in products[: len(rendered)]] != rendered:
            await scroller.remove_children()
            rendered = []
        new_cards = [ProductCard(p) for p in products[len(rendered) :]]
        if new_cards:
            await scroller.mount_all(new_cards)

        self.query_one("#loading-initial").display = False
        self.query_one("#loading-more").display = False
        self._render_status()

        cards = list(scroller.query(ProductCard))
        if self.scroll_watch.observe(cards[-1] if cards else None):
            # a short page may already show its last card
            self.call_after_refresh(self._check_sentinel)

    def _on_scroll(self, _old: float, _new: float) -> None:
        self._check_sentinel()

    def _check_sentinel(self) -> None:
        if self.scroll_watch is None or self.scroll_watch.sentinel is None:
            return
        scroller = self.query_one("#vertscroll-products", VerticalScroll)
        self.scroll_watch.check(
            self.scroll_watch.sentinel.virtual_region.y,
            int(scroller.scroll_y),
            scroller.scrollable_content_region.height,
        )

    def _render_status(self) -> None:
        state = self.catalog.state
        shown = len(state.products)

        if state.initial_loading:
            status = "Loading products..."
        elif not shown and not state.error:
            status = "No products found"
            if state.category:
                status += f' in "{state.category}"'
        else:
            status = f"Showing {shown}"
            if state.total:
                status += f" of {state.total}"
            status += " products"
            if state.category:
                status += f" in {state.category}"
        self.query_one("#label-status", Label).update(status)

        error_row = self.query_one("#hort-error")
        error_row.display = state.error is not None
        self.query_one("#label-error", Label).update(state.error or "")

        self.query_one("#btn-clear-filter").display = state.category is not None

    # ---------------------------
    # Filters
    # ---------------------------

    @on(OptionList.OptionSelected, "#optlist-categories")
    def handle_category(self, event: OptionList.OptionSelected) -> None:
        if event.option.id is None:
            return
        self.catalog.select_category(event.option.id)
        self.reload()

    @on(Button.Pressed, "#btn-clear-filter")
    def handle_clear_filter(self) -> None:
        self.catalog.select_category(None)
        self.reload()

    @on(Select.Changed, "#select-sort")
    def handle_sort(self, event: Select.Changed) -> None:
        if event.value == Select.BLANK or SortOption(event.value) == self.catalog.state.sort:
            return
        self.catalog.select_sort(event.value)
        self.reload()

    @on(Button.Pressed, "#btn-retry")
    def handle_retry(self) -> None:
        self.action_retry()

    # ---------------------------
    # Product actions
    # ---------------------------

    @on(ProductActionMessage)
    @work()
    async def handle_product_action(self, message: ProductActionMessage) -> None:
        if message.action == "add":
            await self.app.state.cart.add(message.product)
            self.app.post_message(CartChangedMessage(pulse=True))
            return

        if await self.app.push_screen_wait(ProdDetailModal(self.catalog, message.product.slug)):
            self.app.post_message(CartChangedMessage(pulse=True))
