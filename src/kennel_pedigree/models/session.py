"""Registry session model."""
from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field


class LoginMethod(str, Enum):
    """The two login flows the registry exposes."""
    CAS = "CAS"
    STANDARD = "STANDARD"


class Session(BaseModel):
    """Authenticated registry context: a cookie header plus expiry."""
    session_id: str
    cookies: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    expires_at: datetime
    is_active: bool = True
    login_method: LoginMethod = LoginMethod.STANDARD

    @property
    def is_expired(self) -> bool:
        return datetime.now(UTC) >= self.expires_at

    @property
    def is_valid(self) -> bool:
        return self.is_active and not self.is_expired
