"""Tests for the registry pedigree-tree client."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import httpx
import pytest
from tenacity import wait_none

from kennel_pedigree.config import Settings
from kennel_pedigree.errors import (
    RegistryAccessDeniedError,
    RegistryFetchError,
    RegistryNotFoundError,
    SessionExpiredError,
)
from kennel_pedigree.models import Session
from kennel_pedigree.registry.client import RegistryClient, is_login_redirect
from kennel_pedigree.registry.models import PedigreeTreePayload, RegistryAncestor


TREE_BODY = {
    "hunder": [
        {"sti": "", "hundId": "DK100/2020", "navn": "Puppy", "tittel": None},
        {"sti": "0", "hundId": "DK10/2015", "navn": "Sire", "tittel": "DKCH SECH", "farge": "Red"},
        {"sti": "1", "hundId": "DK11/2016", "navn": "Dam", "tittel": "", "farge": None},
    ],
    "hunderFarSide": [],
    "hunderMorSide": None,
    "innavlKoeffisient": 0.0125,
    "innavlKoeffisientProsent": "1,25",
    "dato": "2024-05-01",
}


@pytest.fixture()
def settings() -> Settings:
    return Settings(registry_base_url="https://registry.test", max_retries=2)


@pytest.fixture()
def session() -> Session:
    return Session(
        session_id="s-1",
        cookies="JSESSIONID=abc; TGC=xyz",
        expires_at=datetime.now(UTC) + timedelta(minutes=30),
    )


def make_client(settings: Settings, handler) -> RegistryClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RegistryClient(settings, http=http, retry_wait=wait_none())


class TestFetch:
    @pytest.mark.asyncio
    async def test_request_shape_and_parsing(self, settings, session):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=TREE_BODY)

        async with make_client(settings, handler) as client:
            ancestors = await client.fetch_pedigree_tree(session, "DK10/2015", "DK11/2016", 4)

        request = seen[0]
        assert request.url.path == "/dkk-hundedatabase-backend/rest/hund/stamtavleTre"
        assert request.url.params["farHundId"] == "DK10/2015"
        assert request.url.params["morHundId"] == "DK11/2016"
        assert request.url.params["antallGenerasjonerStamtavle"] == "4"
        assert request.url.params["antallGenerasjonerInnavlsberegning"] == "3"
        assert request.url.params["fiktiv"] == "false"
        assert request.headers["Cookie"] == "JSESSIONID=abc; TGC=xyz"
        assert request.headers["Referer"] == "https://registry.test/hundedatabase/hund"

        assert [a.path for a in ancestors] == ["", "0", "1"]
        assert ancestors[0].titles == ""
        assert ancestors[1].registry_id == "DK10/2015"
        assert [t.code for t in ancestors[1].parsed_titles] == ["DKCH", "SECH"]
        assert ancestors[2].color == ""

    @pytest.mark.asyncio
    async def test_single_parent_is_enough(self, settings, session):
        def handler(request: httpx.Request) -> httpx.Response:
            assert "morHundId" not in request.url.params
            return httpx.Response(200, json={"hunder": []})

        async with make_client(settings, handler) as client:
            assert await client.fetch_pedigree_tree(session, "DK10/2015", None, 3) == []

    @pytest.mark.asyncio
    async def test_requires_a_parent(self, settings, session):
        async with make_client(settings, lambda r: httpx.Response(200, json={})) as client:
            with pytest.raises(ValueError):
                await client.fetch_pedigree_tree(session, None, None, 4)

    @pytest.mark.asyncio
    async def test_full_payload(self, settings, session):
        async with make_client(settings, lambda r: httpx.Response(200, json=TREE_BODY)) as client:
            payload = await client.fetch_pedigree_payload(session, "DK10/2015", "DK11/2016", 4)
        assert payload.inbreeding_coefficient == pytest.approx(0.0125)
        assert payload.inbreeding_percent == "1,25"
        assert payload.dam_side == []
        assert [a.path for a in payload.non_root_ancestors()] == ["0", "1"]


class TestFailures:
    @pytest.mark.asyncio
    async def test_login_redirect_body_is_session_expiry(self, settings, session):
        body = '{"redirectUrl": "https://registry.test/cas/login?service=x"}'

        async with make_client(settings, lambda r: httpx.Response(401, text=body)) as client:
            with pytest.raises(SessionExpiredError) as exc:
                await client.fetch_pedigree_tree(session, "A", "B", 4)
        assert exc.value.session_id == "s-1"

    @pytest.mark.asyncio
    async def test_redirect_to_login_is_session_expiry(self, settings, session):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(302, headers={"location": "https://registry.test/cas/login"})

        async with make_client(settings, handler) as client:
            with pytest.raises(SessionExpiredError):
                await client.fetch_pedigree_tree(session, "A", "B", 4)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,error",
        [
            (404, RegistryNotFoundError),
            (403, RegistryAccessDeniedError),
            (401, RegistryAccessDeniedError),
            (500, RegistryFetchError),
        ],
    )
    async def test_status_mapping(self, settings, session, status, error):
        async with make_client(settings, lambda r: httpx.Response(status, text="nope")) as client:
            with pytest.raises(error) as exc:
                await client.fetch_pedigree_tree(session, "A", "B", 4)
        assert exc.value.status_code == status

    @pytest.mark.asyncio
    async def test_unexpected_shape(self, settings, session):
        async with make_client(settings, lambda r: httpx.Response(200, text="<html>")) as client:
            with pytest.raises(RegistryFetchError):
                await client.fetch_pedigree_tree(session, "A", "B", 4)

    @pytest.mark.asyncio
    async def test_transport_errors_are_retried_then_wrapped(self, settings, session):
        calls = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            raise httpx.ConnectError("boom", request=request)

        async with make_client(settings, handler) as client:
            with pytest.raises(RegistryFetchError):
                await client.fetch_pedigree_tree(session, "A", "B", 4)
        assert calls["n"] == 2

    @pytest.mark.asyncio
    async def test_undecodable_body_is_wrapped_without_retry(self, settings, session):
        calls = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            return httpx.Response(
                200, headers={"content-encoding": "gzip"}, content=b"not gzip at all"
            )

        async with make_client(settings, handler) as client:
            with pytest.raises(RegistryFetchError) as exc:
                await client.fetch_pedigree_tree(session, "A", "B", 4)
        assert isinstance(exc.value.__cause__, httpx.DecodingError)
        assert calls["n"] == 1

    @pytest.mark.asyncio
    async def test_transient_transport_error_recovers(self, settings, session):
        calls = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            if calls["n"] == 1:
                raise httpx.ReadTimeout("slow", request=request)
            return httpx.Response(200, json=TREE_BODY)

        async with make_client(settings, handler) as client:
            ancestors = await client.fetch_pedigree_tree(session, "A", "B", 4)
        assert len(ancestors) == 3


def test_is_login_redirect_ignores_success():
    request = httpx.Request("GET", "https://registry.test/x")
    ok = httpx.Response(200, text="redirectUrl cas/login", request=request)
    assert not is_login_redirect(ok)


def test_ancestor_aliases_and_population_by_name():
    a = RegistryAncestor.model_validate({"sti": "01", "hundId": "X", "navn": "N", "udlRyg": "A"})
    assert (a.path, a.generation, a.foreign_back) == ("01", 2, "A")
    b = RegistryAncestor(path="1", registry_id="Y", name="M")
    assert not b.is_root
    assert PedigreeTreePayload.model_validate({}).ancestors == []


def test_settings_url_resolves_against_base():
    settings = Settings(registry_base_url="https://registry.test")
    assert settings.url("/dkk/x?a=1") == "https://registry.test/dkk/x?a=1"
    assert settings.url("login?service=x") == "https://registry.test/login?service=x"
    assert settings.url("https://other.test/y") == "https://other.test/y"
