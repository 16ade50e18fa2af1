"""External breed registry: sessions, login and pedigree-tree fetches."""
from __future__ import annotations

from .auth import RegistryAuthenticator, RegistryCredentials
from .client import PedigreeSource, RegistryClient, is_login_redirect
from .models import PedigreeTreePayload, RegistryAncestor
from .sessions import SessionManager

__all__ = [
    "RegistryAuthenticator",
    "RegistryCredentials",
    "PedigreeSource",
    "RegistryClient",
    "is_login_redirect",
    "PedigreeTreePayload",
    "RegistryAncestor",
    "SessionManager",
]
