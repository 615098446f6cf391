from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.events import ScreenResume
from textual.screen import Screen
from textual.widgets import Button, Footer, Header, Label, ListItem, ListView, Markdown

from utils.messages import ModeSwitchedMessage, UserLoginMessage, UserLogoutMessage
from utils.pure import generate_markdown_table
from views.modal_dialog import DialogModal, QuitDialogModal

PULSE_SECONDS = 0.6


class Sidebar(Container):
    init_mode = ""

    def compose(self) -> ComposeResult:
        yield Label("Account", id="label-info-1")
        yield Markdown("", id="md-userinfo")
        yield Button("Sign in", id="btn-account", variant="primary")
        yield Label("Cart: 0 items", id="label-cart-count")
        yield Label("Menu", id="label-info-2")
        yield ListView(id="list-menu")

    async def on_mount(self):
        self.init_mode = self.app.current_mode

        list_menu: ListView = self.query_one("#list-menu")
        await list_menu.clear()
        await list_menu.extend(
            [
                ListItem(Label(v), id="list-menu-item-" + k)
                for k, v in self.app.STORE_MODES.items()
            ]
        )
        self.highlight_item(self.init_mode)
        await self.refresh_info()

    async def refresh_info(self) -> None:
        if not self.query("#md-userinfo"):
            return  # not composed yet
        state = self.app.state
        table_rows = [["User", state.display_name]]
        if state.user and state.user.get("email"):
            table_rows.append(["Email", state.user["email"]])
        md_table_str = generate_markdown_table(None, table_rows, ["l", "l"])
        await self.query_one("#md-userinfo", Markdown).update(md_table_str)

        btn = self.query_one("#btn-account", Button)
        if state.signed_in:
            btn.label = "Sign out"
            btn.variant = "error"
        else:
            btn.label = "Sign in"
            btn.variant = "primary"
        self.update_cart_count()

    def update_cart_count(self, pulse: bool = False) -> None:
        count = self.app.state.cart.total_items()
        label = self.query_one("#label-cart-count", Label)
        label.update(f"Cart: {count} item{'s' if count != 1 else ''}")
        if pulse:
            label.add_class("-pulse")
            self.set_timer(PULSE_SECONDS, lambda: label.remove_class("-pulse"))

    async def on_list_view_selected(self, event: ListView.Selected):
        selected_mode = event.item.id.removeprefix("list-menu-item-")
        self.highlight_item(self.init_mode)
        if self.app.current_mode != selected_mode:
            self.post_message(ModeSwitchedMessage(self.app.current_mode, selected_mode))
            await self.app.switch_mode(selected_mode)

    @on(Button.Pressed, "#btn-account")
    @work()
    async def handle_account(self):
        if not self.app.state.signed_in:
            from views.scr_login import LoginScreen

            if await self.app.push_screen_wait(LoginScreen()):
                self.post_message(UserLoginMessage())
            return

        if not await self.app.push_screen_wait(
            DialogModal(
                "Are you sure you want to sign out?",
                primary_text="Yes",
                secondary_text="No",
                tone="warning",
            )
        ):
            return

        self.post_message(UserLogoutMessage())

    def highlight_item(self, mode_str: str):
        list_menu = self.query_one("#list-menu")
        for item in list_menu.children:
            item.highlighted = mode_str in (item.id or "")


class BaseScreen(Screen):
    """
    Inherited by all screens, contains common elements like
    headers, footers, sidebar, and keybindings.
    """

    BINDINGS = [
        Binding("ctrl+z", "quit", "Quit App", show=True),
    ]

    def __init__(self):
        super().__init__()

        self.configure()

    def configure(
        self,
        header_sub_title: str = "Store",
        show_sidebar: bool = True,
    ) -> None:
        """
        configure behavior of the base screen
        """
        self.app.title = "Diplostore"
        self.sub_title = header_sub_title
        for k, v in self.app.MODES.items():
            if isinstance(self, v) and k in self.app.STORE_MODES:
                self.sub_title = self.app.STORE_MODES[k]

        self._show_sidebar = show_sidebar

    def compose(self) -> ComposeResult:
        if self._show_sidebar:
            yield Sidebar()
        yield Header()
        yield Footer(show_command_palette=False)

    @property
    def sidebar(self) -> Sidebar | None:
        sidebars = list(self.query(Sidebar))
        return sidebars[0] if sidebars else None

    @on(ScreenResume)
    async def handle_resume(self) -> None:
        if self.sidebar is not None:
            await self.sidebar.refresh_info()

    @work()
    async def action_quit(self):
        await self.app.push_screen_wait(QuitDialogModal())
