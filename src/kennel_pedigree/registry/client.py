"""HTTP client for the external breed registry's pedigree-tree endpoint.

Example:
    settings = load_settings()
    async with RegistryClient(settings) as client:
        ancestors = await client.fetch_pedigree_tree(session, "DK123/2015", "DK456/2016", 4)
"""
from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

import httpx
import structlog
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from kennel_pedigree.config import Settings
from kennel_pedigree.errors import (
    RegistryAccessDeniedError,
    RegistryFetchError,
    RegistryNotFoundError,
    SessionExpiredError,
)
from kennel_pedigree.models.session import Session
from kennel_pedigree.registry.models import PedigreeTreePayload, RegistryAncestor

logger = structlog.get_logger(__name__)

LOGIN_REDIRECT_MARKERS = ("redirectUrl", "cas/login")


@runtime_checkable
class PedigreeSource(Protocol):
    """Anything that can fetch a raw pedigree tree by parent identifiers."""

    async def fetch_pedigree_tree(
        self,
        session: Session,
        sire_id: str | None,
        dam_id: str | None,
        generations: int,
    ) -> list[RegistryAncestor]:
        """Fetch ancestor records for the (unknown) offspring of sire and dam.

        Raises:
            SessionExpiredError: The registry bounced the request to its login page
            RegistryNotFoundError: No pedigree for these identifiers
            RegistryAccessDeniedError: The registry refused the request
            RegistryFetchError: Any other failure
        """
        ...


def is_login_redirect(response: httpx.Response) -> bool:
    """True when a response is the registry sending us back to log in."""
    if response.is_redirect:
        location = response.headers.get("location", "")
        if "login" in location.lower():
            return True
    if response.is_success:
        return False
    body = response.text
    return all(marker in body for marker in LOGIN_REDIRECT_MARKERS)


class RegistryClient:
    """Async client for the pedigree-tree endpoint.

    Only transport failures are retried; HTTP statuses are classified once
    and raised as typed errors for the sync engine to tally.
    """

    def __init__(
        self,
        settings: Settings,
        http: httpx.AsyncClient | None = None,
        retry_wait: Any = None,
    ) -> None:
        self.settings = settings
        self._http = http
        self._owns_http = http is None
        self._retry_wait = retry_wait or wait_exponential_jitter(initial=0.5, max=4.0)

    async def __aenter__(self) -> RegistryClient:
        if self._http is None:
            self._http = httpx.AsyncClient(
                timeout=self.settings.timeout,
                headers={
                    "User-Agent": self.settings.user_agent,
                    "Accept": "application/json, text/plain, */*",
                },
            )
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None

    def build_params(
        self, sire_id: str | None, dam_id: str | None, generations: int
    ) -> dict[str, str]:
        params = {
            "antallGenerasjonerInnavlsberegning": str(self.settings.inbreeding_generations),
            "antallGenerasjonerStamtavle": str(generations),
            "fiktiv": "false",
        }
        if sire_id:
            params["farHundId"] = sire_id
        if dam_id:
            params["morHundId"] = dam_id
        return params

    async def fetch_pedigree_payload(
        self,
        session: Session,
        sire_id: str | None,
        dam_id: str | None,
        generations: int,
    ) -> PedigreeTreePayload:
        """Fetch and validate the full payload, including inbreeding figures."""
        if not sire_id and not dam_id:
            raise ValueError("At least one of sire_id or dam_id is required")
        if self._http is None:
            raise RuntimeError("Client not initialized. Use 'async with' context.")

        params = self.build_params(sire_id, dam_id, generations)
        headers = {
            "Cookie": session.cookies,
            "Referer": self.settings.url(self.settings.referer_path),
        }
        log = logger.bind(session_id=session.session_id, sire_id=sire_id, dam_id=dam_id)

        try:
            async for attempt in AsyncRetrying(
                reraise=True,
                stop=stop_after_attempt(max(1, self.settings.max_retries)),
                wait=self._retry_wait,
                retry=retry_if_exception_type(httpx.TransportError),
            ):
                with attempt:
                    response = await self._http.get(
                        self.settings.pedigree_url,
                        params=params,
                        headers=headers,
                        follow_redirects=False,
                    )
        except httpx.HTTPError as e:
            log.warning("registry.request_failed", error=str(e))
            raise RegistryFetchError(f"Registry request failed: {e}") from e

        status = response.status_code
        if is_login_redirect(response):
            log.warning("registry.session_expired", status_code=status)
            raise SessionExpiredError(session.session_id, status)
        if status == 404:
            raise RegistryNotFoundError("Pedigree not found in registry", status)
        if status in (401, 403):
            raise RegistryAccessDeniedError("Registry denied access to pedigree", status)
        if not response.is_success:
            raise RegistryFetchError(f"Failed to fetch pedigree tree: {status}", status)

        try:
            payload = PedigreeTreePayload.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise RegistryFetchError(f"Unexpected pedigree payload: {e}", status) from e

        log.debug("registry.tree_fetched", ancestors=len(payload.ancestors))
        return payload

    async def fetch_pedigree_tree(
        self,
        session: Session,
        sire_id: str | None,
        dam_id: str | None,
        generations: int,
    ) -> list[RegistryAncestor]:
        payload = await self.fetch_pedigree_payload(session, sire_id, dam_id, generations)
        return payload.ancestors
