from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import Key
from textual.widgets import Button, Checkbox, Input, Label, TabbedContent, TabPane

from api.account import AccountClient
from api.errors import AuthError, FetchError, InvalidInputError
from views.base_screen import BaseScreen

# form field -> widget id, per tab
LOGIN_FIELDS = {"email": "#input-login-email", "password": "#input-login-pwd"}
REGISTER_FIELDS = {
    "first_name": "#input-reg-first",
    "last_name": "#input-reg-last",
    "email": "#input-reg-email",
    "password": "#input-reg-pwd",
    "confirm_password": "#input-reg-confirm",
    "terms": "#check-reg-terms",
}


class LoginScreen(BaseScreen):
    """
    Email / password sign in, plus account creation.
    Dismisses with True when signed in, False when cancelled.
    """

    def __init__(self):
        super().__init__()
        self.configure(header_sub_title="Sign in", show_sidebar=False)

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with TabbedContent(id="super-tab-loginscr"):
            with TabPane("Sign in", id="tab-login"):
                with Vertical(id="div-login"):
                    yield Label("Email")
                    yield Input(placeholder="user@example.com", id="input-login-email")
                    yield Label("Password")
                    yield Input(placeholder="*********", password=True, id="input-login-pwd")
                    yield Label("", id="label-login-error")
                    with Horizontal(id="div-login-btns"):
                        yield Button("Cancel", id="btn-cancel")
                        yield Button("Sign in", id="btn-login", variant="primary")

            with TabPane("Create account", id="tab-signup"):
                with Vertical(id="div-reg"):
                    with Horizontal(id="div-reg-names"):
                        yield Input(placeholder="First name", id="input-reg-first")
                        yield Input(placeholder="Last name", id="input-reg-last")
                    yield Input(placeholder="user@example.com", id="input-reg-email")
                    yield Input(placeholder="Password", password=True, id="input-reg-pwd")
                    yield Input(
                        placeholder="Confirm password", password=True, id="input-reg-confirm"
                    )
                    yield Checkbox("I accept the terms and conditions", id="check-reg-terms")
                    yield Label("", id="label-reg-error")
                    with Horizontal(id="div-reg-btns"):
                        yield Button("Register", id="btn-reg", variant="primary")

    def on_mount(self):
        self.query_one("#input-login-email").focus()

    def on_key(self, event: Key) -> None:
        if event.key == "enter" and self.focused == self.query_one("#input-login-pwd"):
            self.handle_login_submit()
        if event.key == "enter" and self.focused == self.query_one("#input-reg-confirm"):
            self.handle_registration_submit()
        if event.key == "escape":
            self.dismiss(False)

    def _show_error(self, label_id: str, message: str, widget_id: str) -> None:
        self.query_one(label_id, Label).update(f"[red]{message}[/red]")
        widget = self.query_one(widget_id)
        widget.add_class("-invalid")
        widget.focus()

    def _clear_errors(self) -> None:
        for widget in self.query("Input, Checkbox"):
            widget.remove_class("-invalid")
        self.query_one("#label-login-error", Label).update("")
        self.query_one("#label-reg-error", Label).update("")

    async def _signed_in(self, account: AccountClient, data: dict, email: str) -> None:
        state = self.app.state
        token = data.get("token")
        user = data.get("user") or await account.fetch_user(token)
        state.token = token
        state.user = user or {"email": email}
        self.notify(f"Hello {state.display_name}!")
        self.dismiss(True)

    @on(Button.Pressed, "#btn-login")
    @work(exclusive=True)
    async def handle_login_submit(self) -> None:
        email = self.query_one("#input-login-email", Input).value.strip()
        pwd = self.query_one("#input-login-pwd", Input).value
        self._clear_errors()

        btn = self.query_one("#btn-login", Button)
        btn.disabled = True
        btn.label = "Signing in..."

        account = AccountClient(self.app.state.config)
        try:
            data = await account.login(email, pwd)
            await self._signed_in(account, data, email)
        except InvalidInputError as e:
            self._show_error(
                "#label-login-error", e.message, LOGIN_FIELDS.get(e.field, "#input-login-pwd")
            )
        except (AuthError, FetchError) as e:
            self._show_error("#label-login-error", e.message, "#input-login-pwd")
            self.query_one("#input-login-pwd", Input).value = ""
        finally:
            await account.close()
            btn.disabled = False
            btn.label = "Sign in"

    @on(Button.Pressed, "#btn-reg")
    @work(exclusive=True)
    async def handle_registration_submit(self) -> None:
        first = self.query_one("#input-reg-first", Input).value
        last = self.query_one("#input-reg-last", Input).value
        email = self.query_one("#input-reg-email", Input).value.strip()
        pwd = self.query_one("#input-reg-pwd", Input).value
        confirm = self.query_one("#input-reg-confirm", Input).value
        terms = self.query_one("#check-reg-terms", Checkbox).value
        self._clear_errors()

        btn = self.query_one("#btn-reg", Button)
        btn.disabled = True

        account = AccountClient(self.app.state.config)
        try:
            data = await account.register(first, last, email, pwd, confirm, terms)
            if data.get("token"):
                await self._signed_in(account, data, email)
                return
        except InvalidInputError as e:
            self._show_error(
                "#label-reg-error", e.message, REGISTER_FIELDS.get(e.field, "#input-reg-pwd")
            )
            return
        except (AuthError, FetchError) as e:
            self._show_error("#label-reg-error", e.message, "#input-reg-email")
            return
        finally:
            await account.close()
            btn.disabled = False

        # account created without a session: continue on the sign in tab
        self.get_child_by_type(TabbedContent).active = "tab-login"
        self.query_one("#input-login-email", Input).value = email
        input_login_pwd = self.query_one("#input-login-pwd", Input)
        input_login_pwd.value = ""
        input_login_pwd.focus()
        self.notify("Account created. Please sign in.")

    @on(Button.Pressed, "#btn-cancel")
    def handle_cancel(self) -> None:
        self.dismiss(False)
