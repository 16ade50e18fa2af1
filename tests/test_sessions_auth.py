"""Tests for registry sessions and the login handshake."""

from __future__ import annotations

import json
from datetime import timedelta
from pathlib import Path

import httpx
import pytest

from kennel_pedigree.config import Settings
from kennel_pedigree.errors import RegistryAuthError
from kennel_pedigree.models import LoginMethod
from kennel_pedigree.registry.auth import (
    RegistryAuthenticator,
    RegistryCredentials,
    parse_login_form,
)
from kennel_pedigree.registry.sessions import SessionManager


BASE = "https://registry.test"

CAS_FORM = """
<html><body>
<form id="fm1" action="/cas/login?service=abc" method="post">
  <input type="text" name="username" />
  <input type="password" name="password" />
  <input type="hidden" name="execution" value="e1s1" />
  <input type="hidden" name="_eventId" value="submit" />
</form>
</body></html>
"""

STANDARD_FORM = """
<html><body>
<form action="/dkk/secure/doLogin" method="post">
  <input type="hidden" name="ARTICLE_ID" value="6" />
  <input type="text" name="username" />
  <input type="password" name="password" />
</form>
</body></html>
"""


class TestSessionManager:
    def test_save_and_get_newest(self, sessions: SessionManager):
        first = sessions.save_session("a=1", LoginMethod.CAS)
        second = sessions.save_session("b=2", "STANDARD")
        newest = sessions.get_valid_session()
        assert newest.session_id == second.session_id
        assert sessions.get_valid_session(first.session_id).cookies == "a=1"

    def test_expired_session_is_not_valid(self, sessions: SessionManager):
        old = sessions.save_session("a=1", LoginMethod.CAS, ttl=timedelta(minutes=-1))
        assert sessions.get_valid_session(old.session_id) is None
        assert sessions.get_valid_session() is None

    def test_invalidate(self, sessions: SessionManager):
        s = sessions.save_session("a=1", LoginMethod.STANDARD)
        assert sessions.invalidate_session(s.session_id)
        assert not sessions.invalidate_session(s.session_id)
        assert sessions.get_valid_session(s.session_id) is None

    def test_invalidate_expired_sessions(self, sessions: SessionManager):
        sessions.save_session("old=1", LoginMethod.CAS, ttl=timedelta(seconds=-5))
        live = sessions.save_session("new=1", LoginMethod.CAS)
        assert sessions.invalidate_expired_sessions() == 1
        active = sessions.list_sessions(active_only=True)
        assert [s.session_id for s in active] == [live.session_id]
        assert len(sessions.list_sessions()) == 2

    def test_ttl_applied(self, sessions: SessionManager):
        s = sessions.save_session("a=1", LoginMethod.CAS)
        assert s.expires_at - s.created_at == timedelta(minutes=30)
        assert s.is_valid


class TestCredentials:
    def test_params_win(self, monkeypatch):
        monkeypatch.setenv("REGISTRY_USERNAME", "env-user")
        monkeypatch.setenv("REGISTRY_PASSWORD", "env-pass")
        creds = RegistryCredentials.from_sources("me", "secret")
        assert creds.username == "me"

    def test_env_then_file(self, monkeypatch, tmp_path: Path):
        monkeypatch.delenv("REGISTRY_USERNAME", raising=False)
        monkeypatch.delenv("REGISTRY_PASSWORD", raising=False)
        cfg = tmp_path / "creds.json"
        cfg.write_text(json.dumps({"registry_username": "file-user", "registry_password": "pw"}))
        assert RegistryCredentials.from_sources(config_file=cfg).username == "file-user"

        monkeypatch.setenv("REGISTRY_USERNAME", "env-user")
        monkeypatch.setenv("REGISTRY_PASSWORD", "env-pass")
        assert RegistryCredentials.from_sources(config_file=cfg).username == "env-user"

    def test_missing(self, monkeypatch, tmp_path: Path):
        monkeypatch.delenv("REGISTRY_USERNAME", raising=False)
        monkeypatch.delenv("REGISTRY_PASSWORD", raising=False)
        assert RegistryCredentials.from_sources(config_file=tmp_path / "none.json") is None


def test_parse_login_form():
    form = parse_login_form(CAS_FORM)
    assert form.action == "/cas/login?service=abc"
    assert form.hidden == {"execution": "e1s1", "_eventId": "submit"}
    assert (form.username_field, form.password_field) == ("username", "password")


def test_parse_login_form_defaults():
    form = parse_login_form("<html></html>")
    assert form.action is None
    assert form.hidden == {}
    assert form.username_field == "username"


def make_auth(sessions: SessionManager, handler) -> RegistryAuthenticator:
    settings = Settings(registry_base_url=BASE)
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RegistryAuthenticator(settings, sessions, RegistryCredentials("me", "pw"), http=http)


class TestAuthenticator:
    @pytest.mark.asyncio
    async def test_cas_flow(self, sessions: SessionManager):
        posted: dict[str, str] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET" and request.url.path == "/dkk/secure/openIndex":
                return httpx.Response(
                    200, text='<a href="/cas/login">login</a>', headers={"set-cookie": "JSESSIONID=j1; Path=/"}
                )
            if request.method == "GET" and request.url.path == "/cas/login":
                return httpx.Response(200, text=CAS_FORM)
            if request.method == "POST":
                posted.update(dict(httpx.QueryParams(request.content.decode())))
                return httpx.Response(
                    302,
                    headers={"location": f"{BASE}/done?ticket=ST-1", "set-cookie": "TGC=t1; Path=/"},
                )
            if request.url.path == "/done":
                return httpx.Response(200, text="ok", headers={"set-cookie": "AUTH=a1; Path=/"})
            return httpx.Response(404)

        async with make_auth(sessions, handler) as auth:
            session = await auth.create_session()

        assert session.login_method == LoginMethod.CAS
        assert session.cookies == "JSESSIONID=j1; TGC=t1; AUTH=a1"
        assert posted["username"] == "me"
        assert posted["password"] == "pw"
        assert posted["execution"] == "e1s1"
        assert sessions.get_valid_session().session_id == session.session_id

    @pytest.mark.asyncio
    async def test_standard_flow(self, sessions: SessionManager):
        posted: dict[str, str] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return httpx.Response(200, text=STANDARD_FORM, headers={"set-cookie": "S=1; Path=/"})
            posted.update(dict(httpx.QueryParams(request.content.decode())))
            posted["path"] = request.url.path
            return httpx.Response(200, text="welcome")

        async with make_auth(sessions, handler) as auth:
            session = await auth.create_session()

        assert session.login_method == LoginMethod.STANDARD
        assert session.cookies == "S=1"
        assert posted["path"] == "/dkk/secure/doLogin"
        assert posted["ARTICLE_ID"] == "6"
        assert posted["login"] == "Login"

    @pytest.mark.asyncio
    async def test_cas_relative_action_resolves_against_form_page(self, sessions: SessionManager):
        posted: list[str] = []
        relative_form = CAS_FORM.replace('action="/cas/login?service=abc"', 'action="login?service=x"')

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                posted.append(str(request.url))
                return httpx.Response(302, headers={"location": "done"})
            if request.url.path == "/cas/login":
                return httpx.Response(200, text=relative_form)
            if request.url.path == "/cas/done":
                return httpx.Response(200, text="ok")
            return httpx.Response(200, text='<a href="/cas/login">login</a>')

        async with make_auth(sessions, handler) as auth:
            assert await auth.login() == LoginMethod.CAS
        assert posted == ["https://registry.test/cas/login?service=x"]

    @pytest.mark.asyncio
    async def test_form_without_action_posts_back_to_its_page(self, sessions: SessionManager):
        posted: list[httpx.Request] = []
        page = """
<form method="post">
  <input type="text" name="j_username" />
  <input type="password" name="j_password" />
</form>
"""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                posted.append(request)
                return httpx.Response(200, text="welcome")
            return httpx.Response(200, text=page)

        async with make_auth(sessions, handler) as auth:
            assert await auth.login() == LoginMethod.STANDARD
            login_url = auth.settings.login_url

        assert str(posted[0].url) == login_url
        form = dict(httpx.QueryParams(posted[0].content.decode()))
        assert form["j_username"] == "me"
        assert form["j_password"] == "pw"
        assert "username" not in form

    @pytest.mark.asyncio
    async def test_cas_rejected(self, sessions: SessionManager):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                return httpx.Response(200, text="bad credentials")
            return httpx.Response(200, text=CAS_FORM)

        async with make_auth(sessions, handler) as auth:
            with pytest.raises(RegistryAuthError):
                await auth.create_session()
        assert sessions.list_sessions() == []

    @pytest.mark.asyncio
    async def test_login_page_failure(self, sessions: SessionManager):
        async with make_auth(sessions, lambda r: httpx.Response(503)) as auth:
            with pytest.raises(RegistryAuthError):
                await auth.create_session()

    @pytest.mark.asyncio
    async def test_reuses_valid_session(self, sessions: SessionManager):
        existing = sessions.save_session("k=v", LoginMethod.CAS)

        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        async with make_auth(sessions, handler) as auth:
            session = await auth.create_session()
        assert session.session_id == existing.session_id
