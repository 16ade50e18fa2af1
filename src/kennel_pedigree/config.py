"""Runtime settings, read from the environment (and a .env file via the CLI)."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import httpx
from dotenv import load_dotenv


def _f(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except ValueError:
        return default


def _i(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except ValueError:
        return default


def _s(name: str, default: str) -> str:
    return os.getenv(name) or default


@dataclass(frozen=True)
class Settings:
    db_path: Path = Path(_s("KENNEL_DB_PATH", "./data/kennel.db"))

    # Registry endpoints
    registry_base_url: str = _s("REGISTRY_BASE_URL", "https://www.hundeweb.dk")
    pedigree_path: str = _s(
        "REGISTRY_PEDIGREE_PATH", "/dkk-hundedatabase-backend/rest/hund/stamtavleTre"
    )
    login_path: str = _s("REGISTRY_LOGIN_PATH", "/dkk/secure/openIndex?ARTICLE_ID=6")
    cas_login_path: str = _s(
        "REGISTRY_CAS_LOGIN_PATH",
        "/cas/login?locale=da&service=https%3A%2F%2Fwww.hundeweb.dk%2Fdkk-hundedatabase-backend%2Flogin%2Fcas",
    )
    referer_path: str = _s("REGISTRY_REFERER_PATH", "/hundedatabase/hund")
    timeout: float = _f("REGISTRY_TIMEOUT", 30.0)
    max_retries: int = _i("REGISTRY_MAX_RETRIES", 3)
    user_agent: str = _s(
        "REGISTRY_USER_AGENT",
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/139.0.0.0 Safari/537.36",
    )

    # Synchronization
    request_delay: float = _f("SYNC_REQUEST_DELAY", 0.5)
    generations: int = _i("SYNC_GENERATIONS", 4)
    inbreeding_generations: int = _i("SYNC_INBREEDING_GENERATIONS", 3)
    default_breed_id: int = _i("DEFAULT_BREED_ID", 1)

    # Presentation / sessions
    tree_max_depth: int = _i("TREE_MAX_DEPTH", 3)
    session_ttl_minutes: int = _i("SESSION_TTL_MINUTES", 30)

    log_level: str = _s("LOG_LEVEL", "INFO").upper()

    def url(self, path: str) -> str:
        return str(httpx.URL(self.registry_base_url).join(path))

    @property
    def pedigree_url(self) -> str:
        return self.url(self.pedigree_path)

    @property
    def login_url(self) -> str:
        return self.url(self.login_path)

    @property
    def cas_login_url(self) -> str:
        return self.url(self.cas_login_path)


def load_settings() -> Settings:
    """Load .env into the environment, then build settings from it.

    Field defaults are evaluated when the class body runs, so values coming
    from the .env file are applied by rebuilding through the env helpers.
    """
    load_dotenv()
    return Settings(
        db_path=Path(_s("KENNEL_DB_PATH", "./data/kennel.db")),
        registry_base_url=_s("REGISTRY_BASE_URL", Settings.registry_base_url),
        pedigree_path=_s("REGISTRY_PEDIGREE_PATH", Settings.pedigree_path),
        login_path=_s("REGISTRY_LOGIN_PATH", Settings.login_path),
        cas_login_path=_s("REGISTRY_CAS_LOGIN_PATH", Settings.cas_login_path),
        referer_path=_s("REGISTRY_REFERER_PATH", Settings.referer_path),
        timeout=_f("REGISTRY_TIMEOUT", Settings.timeout),
        max_retries=_i("REGISTRY_MAX_RETRIES", Settings.max_retries),
        user_agent=_s("REGISTRY_USER_AGENT", Settings.user_agent),
        request_delay=_f("SYNC_REQUEST_DELAY", Settings.request_delay),
        generations=_i("SYNC_GENERATIONS", Settings.generations),
        inbreeding_generations=_i("SYNC_INBREEDING_GENERATIONS", Settings.inbreeding_generations),
        default_breed_id=_i("DEFAULT_BREED_ID", Settings.default_breed_id),
        tree_max_depth=_i("TREE_MAX_DEPTH", Settings.tree_max_depth),
        session_ttl_minutes=_i("SESSION_TTL_MINUTES", Settings.session_ttl_minutes),
        log_level=_s("LOG_LEVEL", Settings.log_level).upper(),
    )
