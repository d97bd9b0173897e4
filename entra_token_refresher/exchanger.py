"""Exchange a service account token for an Entra ID access token with MSAL."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Protocol

import msal

from .config import AZURE_DEVOPS_RESOURCE_ID, DEFAULT_AUTHORITY_HOST
from .errors import AssertionUnavailable, ExchangeFailed, RefreshError
from .identity import IdentityBinding, ProjectedToken
from .utils import redact

logger = logging.getLogger(__name__)

DEFAULT_SCOPE_SUFFIX = ".default"

AppFactory = Callable[..., msal.ConfidentialClientApplication]


class AssertionSource(Protocol):
    """Supplies the signed assertion presented as the client credential."""

    def provide(self) -> str:
        """Return the assertion or raise :class:`AssertionUnavailable`."""


class StaticAssertionSource:
    """Assertion source backed by a token issued earlier in the run."""

    def __init__(self, projected_token: ProjectedToken):
        self._projected_token = projected_token

    def provide(self) -> str:
        token = self._projected_token.token
        if not token:
            raise AssertionUnavailable("projected service account token is empty")
        return token


@dataclass(frozen=True)
class FederatedAccessToken:
    """Access token returned by Entra ID for the target resource."""

    access_token: str = field(repr=False)
    expires_in: Optional[int] = None
    token_type: str = "Bearer"
    scope: Optional[str] = None


def build_default_scope(resource_id: str) -> str:
    """Express ``resource_id`` as a ``<resource>/.default`` scope.

    Resources already carrying the suffix are returned unchanged.
    """

    if DEFAULT_SCOPE_SUFFIX in resource_id:
        return resource_id
    return f"{resource_id}/{DEFAULT_SCOPE_SUFFIX}"


def _describe_error(result: Dict[str, Any]) -> str:
    error = result.get("error") or "unknown_error"
    description = result.get("error_description")
    message = f"{error}: {description}" if description else error
    correlation_id = result.get("correlation_id")
    if correlation_id:
        message = f"{message} (correlation id {correlation_id})"
    return message


class TokenExchanger:
    """Client-credentials exchange using a client assertion."""

    def __init__(
        self,
        authority_host: str = DEFAULT_AUTHORITY_HOST,
        resource_id: str = AZURE_DEVOPS_RESOURCE_ID,
        app_factory: Optional[AppFactory] = None,
    ) -> None:
        self._authority_host = authority_host.rstrip("/")
        self._scope = build_default_scope(resource_id)
        self._app_factory = app_factory or msal.ConfidentialClientApplication

    @property
    def scope(self) -> str:
        return self._scope

    def authority(self, tenant_id: str) -> str:
        return f"{self._authority_host}/{tenant_id}"

    def exchange(
        self, binding: IdentityBinding, assertion_source: AssertionSource
    ) -> FederatedAccessToken:
        """Trade the assertion for an access token scoped to the resource."""

        provided: list[str] = []

        def client_assertion() -> str:
            # MSAL calls this lazily for each token request.
            assertion = assertion_source.provide()
            provided.append(assertion)
            return assertion

        try:
            # A new application per exchange keeps MSAL's in-memory cache empty.
            app = self._app_factory(
                client_id=binding.client_id,
                authority=self.authority(binding.tenant_id),
                client_credential={"client_assertion": client_assertion},
            )
            result = app.acquire_token_for_client(scopes=[self._scope])
        except RefreshError:
            raise
        except Exception as exc:
            raise ExchangeFailed(
                f"token exchange for client '{binding.client_id}' failed: "
                f"{redact(str(exc), *provided)}"
            ) from None

        if not result or "error" in result:
            raise ExchangeFailed(
                f"token exchange for client '{binding.client_id}' was rejected: "
                f"{redact(_describe_error(result or {}), *provided)}"
            )

        access_token = result.get("access_token")
        if not access_token:
            raise ExchangeFailed(
                f"token exchange for client '{binding.client_id}' returned no access token"
            )

        logger.info(
            "Acquired access token for client %s (scope %s)",
            binding.client_id,
            self._scope,
        )
        expires_in = result.get("expires_in")
        return FederatedAccessToken(
            access_token=access_token,
            expires_in=int(expires_in) if expires_in is not None else None,
            token_type=result.get("token_type", "Bearer"),
            scope=result.get("scope"),
        )
