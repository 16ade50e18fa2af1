"""Login handshake with the registry.

The registry runs two login front-ends: a CAS single sign-on page and an
older form on the site itself. Which one applies is decided from the login
page. Either way the result is a cookie header stored as a new session.

Credentials are loaded with priority: params > env > config file
"""
from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx
import structlog
from bs4 import BeautifulSoup

from kennel_pedigree.config import Settings
from kennel_pedigree.errors import RegistryAuthError
from kennel_pedigree.models.session import LoginMethod, Session
from kennel_pedigree.registry.sessions import SessionManager

logger = structlog.get_logger(__name__)

DEFAULT_CREDENTIALS_FILE = Path("data/credentials.json")


@dataclass
class RegistryCredentials:
    """Registry login credentials."""

    username: str
    password: str

    @classmethod
    def from_sources(
        cls,
        username: str | None = None,
        password: str | None = None,
        config_file: Path | None = None,
    ) -> RegistryCredentials | None:
        """Load credentials with priority: params > env > config.

        Args:
            username: Direct username parameter (highest priority)
            password: Direct password parameter (highest priority)
            config_file: Optional JSON file with registry_username/registry_password

        Returns:
            RegistryCredentials or None if not found
        """
        if username and password:
            return cls(username=username, password=password)

        env_username = os.getenv("REGISTRY_USERNAME")
        env_password = os.getenv("REGISTRY_PASSWORD")
        if env_username and env_password:
            return cls(username=env_username, password=env_password)

        if config_file and config_file.exists():
            try:
                data = json.loads(config_file.read_text())
            except (OSError, ValueError) as e:
                logger.debug("auth.credentials_file_unreadable", path=str(config_file), error=str(e))
                return None
            file_username = data.get("registry_username")
            file_password = data.get("registry_password")
            if file_username and file_password:
                return cls(username=file_username, password=file_password)

        return None


@dataclass
class LoginForm:
    action: str | None
    hidden: dict[str, str]
    username_field: str = "username"
    password_field: str = "password"


def parse_login_form(html: str) -> LoginForm:
    """Pull the form action, hidden inputs and credential field names out of a login page.

    ``action`` is left as written (possibly relative) and is None when the form
    has none, meaning it posts back to the page it came from.
    """
    soup = BeautifulSoup(html, "html.parser")
    form = soup.find("form")
    scope = form or soup

    action = None
    if form is not None and form.get("action"):
        action = form["action"]

    hidden = {
        inp["name"]: inp.get("value", "")
        for inp in scope.find_all("input", attrs={"type": "hidden"})
        if inp.get("name")
    }

    names = [inp["name"] for inp in scope.find_all("input") if inp.get("name")]
    username_field = next((n for n in names if "username" in n.lower()), None)
    if username_field is None:
        username_field = next((n for n in names if "user" in n.lower()), "username")
    password_field = next((n for n in names if "password" in n.lower()), "password")

    return LoginForm(action, hidden, username_field, password_field)


def form_target(page: httpx.Response, form: LoginForm) -> httpx.URL:
    """Resolve where a form posts, relative to the page that served it."""
    if not form.action:
        return page.url
    return page.url.join(form.action)


class RegistryAuthenticator:
    """Creates registry sessions, reusing a stored one while it is valid.

    Example:
        creds = RegistryCredentials.from_sources()
        async with RegistryAuthenticator(settings, sessions, creds) as auth:
            session = await auth.create_session()
    """

    def __init__(
        self,
        settings: Settings,
        sessions: SessionManager,
        credentials: RegistryCredentials,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings
        self.sessions = sessions
        self.credentials = credentials
        self._http = http
        self._owns_http = http is None
        self._cookies: dict[str, str] = {}

    async def __aenter__(self) -> RegistryAuthenticator:
        if self._http is None:
            self._http = httpx.AsyncClient(
                timeout=self.settings.timeout,
                headers={"User-Agent": self.settings.user_agent},
            )
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None

    @property
    def cookie_header(self) -> str:
        return "; ".join(f"{name}={value}" for name, value in self._cookies.items())

    def _collect(self, response: httpx.Response) -> None:
        for name, value in response.cookies.items():
            self._cookies[name] = value

    def _headers(self, referer: str | None = None, form: bool = False) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self._cookies:
            headers["Cookie"] = self.cookie_header
        if referer:
            headers["Referer"] = referer
        if form:
            headers["Content-Type"] = "application/x-www-form-urlencoded"
        return headers

    async def create_session(self) -> Session:
        """Return a valid stored session, or log in and store a new one.

        Raises:
            RegistryAuthError: The login page could not be loaded or login was rejected
        """
        existing = self.sessions.get_valid_session()
        if existing is not None:
            logger.info("auth.session_reused", session_id=existing.session_id)
            return existing

        method = await self.login()
        return self.sessions.save_session(self.cookie_header, method)

    async def login(self) -> LoginMethod:
        """Run the handshake and return which flow succeeded."""
        if self._http is None:
            raise RuntimeError("Authenticator not initialized. Use 'async with' context.")
        self._cookies = {}

        try:
            page = await self._http.get(self.settings.login_url, follow_redirects=True)
        except httpx.HTTPError as e:
            raise RegistryAuthError(f"Failed to load login page: {e}") from e
        if not page.is_success:
            raise RegistryAuthError(f"Failed to load login page: {page.status_code}", page.status_code)
        self._collect(page)

        try:
            if "cas/login" in page.text or "cas/login" in str(page.url):
                logger.info("auth.method_detected", method="CAS")
                ok = await self._cas_login()
                method = LoginMethod.CAS
            else:
                logger.info("auth.method_detected", method="STANDARD")
                ok = await self._standard_login(page)
                method = LoginMethod.STANDARD
        except httpx.HTTPError as e:
            raise RegistryAuthError(f"Login request failed: {e}") from e

        if not ok:
            raise RegistryAuthError(f"{method.value} login was rejected by the registry")
        return method

    async def _cas_login(self) -> bool:
        cas_url = self.settings.cas_login_url
        page = await self._http.get(cas_url, headers=self._headers())
        self._collect(page)

        form = parse_login_form(page.text)
        data = {
            **form.hidden,
            form.username_field: self.credentials.username,
            form.password_field: self.credentials.password,
        }
        response = await self._http.post(
            form_target(page, form),
            data=data,
            headers=self._headers(referer=str(page.url), form=True),
            follow_redirects=False,
        )
        self._collect(response)

        if response.status_code != 302:
            return False
        location = response.headers.get("location")
        if location:
            final = await self._http.get(
                response.url.join(location), headers=self._headers(), follow_redirects=False
            )
            self._collect(final)
        return True

    async def _standard_login(self, page: httpx.Response) -> bool:
        form = parse_login_form(page.text)
        data = {
            **form.hidden,
            form.username_field: self.credentials.username,
            form.password_field: self.credentials.password,
            "login": "Login",
            "submit": "Login",
        }
        response = await self._http.post(
            form_target(page, form),
            data=data,
            headers=self._headers(referer=str(page.url), form=True),
            follow_redirects=False,
        )
        self._collect(response)
        return response.status_code in (200, 302)
