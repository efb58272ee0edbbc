"""Identity-provider handoff models."""

from dataclasses import dataclass


@dataclass
class ProviderSession:
    """Tokens handed off by the identity-provider session."""

    provider_token: str | None = None
    provider_refresh_token: str | None = None


@dataclass
class TokenRefreshResult:
    """Response of the identity-provider refresh endpoint."""

    access_token: str
    refresh_token: str
    expires_in: int
