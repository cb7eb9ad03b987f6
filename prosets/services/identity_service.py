"""
Identity Service - verifies Auth0-issued RS256 access tokens.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
from jose import jwt, JWTError

from prosets.config import settings
from prosets.exceptions import ExternalServiceError, UnauthorizedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IdentityProfile:
    """Claims the marketplace cares about."""

    subject_id: str
    email: str
    name: Optional[str] = None


class IdentityService:
    """Validates bearer tokens against the tenant JWKS."""

    JWKS_CACHE_SECONDS = 600

    _jwks: Optional[List[Dict[str, Any]]] = None
    _jwks_fetched_at: float = 0.0

    def __init__(
        self,
        domain: Optional[str] = None,
        audience: Optional[str] = None,
    ):
        self.domain = domain or settings.auth0_domain
        self.audience = audience or settings.auth0_audience
        self.issuer = f"https://{self.domain}/"
        self.jwks_url = f"{self.issuer}.well-known/jwks.json"

    async def _get_signing_keys(self, force: bool = False) -> List[Dict[str, Any]]:
        """Fetch the JWKS, cached on the class across requests."""
        cls = type(self)
        fresh = time.monotonic() - cls._jwks_fetched_at < self.JWKS_CACHE_SECONDS
        if cls._jwks is not None and fresh and not force:
            return cls._jwks

        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(
                    self.jwks_url,
                    timeout=settings.external_timeout_seconds,
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Failed to fetch JWKS from {self.jwks_url}: {e}")
            raise ExternalServiceError("Identity provider unavailable")

        cls._jwks = response.json().get("keys", [])
        cls._jwks_fetched_at = time.monotonic()
        return cls._jwks

    async def _find_key(self, kid: str) -> Dict[str, Any]:
        keys = await self._get_signing_keys()
        for key in keys:
            if key.get("kid") == kid:
                return key

        # Key rotation: refetch once before giving up
        keys = await self._get_signing_keys(force=True)
        for key in keys:
            if key.get("kid") == kid:
                return key

        raise UnauthorizedError("Unknown signing key")

    async def verify(self, token: str) -> IdentityProfile:
        """Validate signature, audience and issuer, then extract the profile."""
        try:
            header = jwt.get_unverified_header(token)
        except JWTError:
            raise UnauthorizedError("Invalid token")

        key = await self._find_key(header.get("kid", ""))

        try:
            claims = jwt.decode(
                token,
                key,
                algorithms=["RS256"],
                audience=self.audience,
                issuer=self.issuer,
            )
        except JWTError as e:
            logger.info(f"Rejected access token: {e}")
            raise UnauthorizedError("Invalid token")

        return self.profile_from_claims(claims)

    def profile_from_claims(self, claims: Dict[str, Any]) -> IdentityProfile:
        """Map token claims (standard or audience-namespaced) to a profile."""
        subject = claims.get("sub")
        email = claims.get("email") or claims.get(f"{self.audience}/email")
        name = claims.get("name") or claims.get(f"{self.audience}/name")

        if not subject or not email:
            raise UnauthorizedError("Invalid token payload")

        return IdentityProfile(subject_id=subject, email=email, name=name)
