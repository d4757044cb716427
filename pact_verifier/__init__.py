"""Verify a running provider against consumer pacts fetched from a Pact broker."""

from .config import ProviderConfig, Settings, get_settings
from .core.schemas import MatchResult, RunOutcome
from .verifier import Verifier, verify

__all__ = [
    "MatchResult",
    "ProviderConfig",
    "RunOutcome",
    "Settings",
    "Verifier",
    "get_settings",
    "verify",
]
