from textual.message import Message


class QuitRequestedMessage(Message):
    """
    broadcasted when the app is about to quit
    """

    bubble = True


class UserLogoutMessage(Message):
    """
    broadcasted when the user signs out
    """

    bubble = True


class UserLoginMessage(Message):
    """
    Fired after a successful sign in, so headers and sidebars can refresh
    """

    bubble = True


class CartChangedMessage(Message):
    """
    Fired whenever the cart store was mutated (add, quantity, remove, clear).
    Refreshes the cart screen and the cart counter in the sidebar.

    If posted from a modal, post at App level
    """

    bubble = True

    def __init__(self, pulse: bool = False) -> None:
        super().__init__()
        self.pulse = pulse


class ModeSwitchedMessage(Message):
    """
    fired whenever switch_mode is called
    must be fired from app level
    """

    bubble = True

    def __init__(self, old_mode: str, new_mode: str) -> None:
        super().__init__()
        self.old_mode = old_mode
        self.new_mode = new_mode
