# login / user lookup against the store backend; token kept in the local store
from __future__ import annotations

import re
from typing import Any, Dict, Optional

import httpx

from api.errors import AuthError, FetchError, InvalidInputError
from storage import local
from utils.config import StoreConfig
from utils.logger import get_logger

_logger = get_logger(__name__)

EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")
MIN_PASSWORD_LENGTH = 6


def validate_login(email: str, password: str) -> None:
    """Raise InvalidInputError for the first problem found in the login form."""
    if not email:
        raise InvalidInputError("Email is required.", field="email")
    if not EMAIL_PATTERN.search(email):
        raise InvalidInputError("Invalid email format.", field="email")
    if not password:
        raise InvalidInputError("Password is required.", field="password")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidInputError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters.",
            field="password",
        )


def validate_registration(
    first_name: str,
    last_name: str,
    email: str,
    password: str,
    confirm_password: str,
    accepted_terms: bool,
) -> None:
    """Raise InvalidInputError for the first problem found in the sign-up form."""
    if not first_name:
        raise InvalidInputError("First name is required.", field="first_name")
    if not last_name:
        raise InvalidInputError("Last name is required.", field="last_name")
    validate_login(email, password)
    if password != confirm_password:
        raise InvalidInputError("Passwords do not match.", field="confirm_password")
    if not accepted_terms:
        raise InvalidInputError(
            "You must accept the terms and conditions.", field="terms"
        )


def _error_message(
    response: httpx.Response, fallback: str = "Something went wrong while signing in."
) -> str:
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    if response.status_code == 401:
        return "Invalid credentials. Please check your email and password."
    if response.status_code == 422:
        return "This email is already registered."
    if response.status_code == 429:
        return "Too many failed attempts. Please try again later."
    return fallback


class AccountClient:
    def __init__(
        self, config: StoreConfig, client: Optional[httpx.AsyncClient] = None
    ) -> None:
        self.config = config
        self.client = client or httpx.AsyncClient(
            base_url=config.backend_api_url,
            timeout=config.http_timeout,
            headers={"Content-Type": "application/json"},
        )

    async def close(self) -> None:
        await self.client.aclose()

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        """
        Sign in and persist the returned token (and user, when present).
        Returns the backend payload.
        """
        email = email.strip()
        validate_login(email, password)

        try:
            response = await self.client.post(
                "/login", json={"email": email, "password": password}
            )
        except httpx.HTTPError as e:
            _logger.error(f"Login request failed: {e}")
            raise FetchError(
                "Could not reach the server. Check your internet connection."
            ) from e

        if response.status_code != 200:
            _logger.warning(f"Login rejected with status {response.status_code}")
            raise AuthError(_error_message(response), response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise FetchError("Unexpected response from the server.") from e
        if not isinstance(data, dict) or not data:
            raise FetchError("Unexpected response from the server.")

        await self._store_session(data)
        _logger.info(f"Signed in as {email}")
        return data

    async def register(
        self,
        first_name: str,
        last_name: str,
        email: str,
        password: str,
        confirm_password: str,
        accepted_terms: bool,
    ) -> Dict[str, Any]:
        """
        Create an account. The backend may sign the user in right away
        (token in the payload, persisted like a login) or ask for a separate
        login; check ``"token" in`` the returned payload.
        """
        first_name, last_name, email = first_name.strip(), last_name.strip(), email.strip()
        validate_registration(
            first_name, last_name, email, password, confirm_password, accepted_terms
        )

        try:
            response = await self.client.post(
                "/register",
                json={
                    "first_name": first_name,
                    "last_name": last_name,
                    "email": email,
                    "password": password,
                },
            )
        except httpx.HTTPError as e:
            _logger.error(f"Registration request failed: {e}")
            raise FetchError(
                "Could not reach the server. Check your internet connection."
            ) from e

        if response.status_code not in (200, 201):
            _logger.warning(f"Registration rejected with status {response.status_code}")
            raise AuthError(
                _error_message(response, "Something went wrong while creating your account."),
                response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise FetchError("Unexpected response from the server.") from e
        if not isinstance(data, dict):
            raise FetchError("Unexpected response from the server.")

        await self._store_session(data)
        _logger.info(f"Registered {email}")
        return data

    async def _store_session(self, data: Dict[str, Any]) -> None:
        if data.get("token"):
            await local.set_item(local.AUTH_TOKEN_KEY, str(data["token"]))
        if data.get("user"):
            await local.set_json(local.USER_KEY, data["user"])

    async def fetch_user(self, token: Optional[str]) -> Optional[Dict[str, Any]]:
        """
        Profile for the stored token; None when signed out.
        A rejected token (401/403) is removed before AuthError is raised.
        """
        if not token:
            return None
        try:
            response = await self.client.post("/user-data", json={"token": token})
        except httpx.HTTPError as e:
            _logger.error(f"Error fetching user data: {e}")
            raise FetchError("Could not load your account.") from e

        if response.status_code in (401, 403):
            _logger.info("Token invalid or expired, signing out")
            await self.logout()
            raise AuthError("Your session has expired.", response.status_code)
        if response.is_error:
            raise FetchError("Could not load your account.")

        try:
            return response.json()
        except ValueError as e:
            raise FetchError("Could not load your account.") from e

    async def logout(self) -> None:
        await local.remove_item(local.AUTH_TOKEN_KEY)
        await local.remove_item(local.USER_KEY)


async def stored_token() -> Optional[str]:
    return await local.get_item(local.AUTH_TOKEN_KEY)
