"""Sequence the refresh steps and map failures to a single outcome."""

from __future__ import annotations

import enum
import logging
from pprint import pformat
from typing import Any, Callable, Dict, List, Optional, TypeVar

from .cancellation import CancellationSignal
from .config import Settings
from .errors import RefreshError, RefreshFailed
from .exchanger import StaticAssertionSource, TokenExchanger
from .identity import IdentityDirectory, fetch_projected_token, resolve_identity_binding
from .publisher import CredentialStore, publish_access_token
from .utils import claims_for_logging

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RefreshState(str, enum.Enum):
    INIT = "init"
    RESOLVING = "resolving"
    FETCHING = "fetching"
    EXCHANGING = "exchanging"
    PUBLISHING = "publishing"
    DONE = "done"
    FAILED = "failed"


def _log_flow_step(step: str, details: Optional[Dict[str, Any]] = None) -> None:
    """Emit structured log entries for the refresh steps."""

    if details:
        pretty_details = pformat(details, sort_dicts=True)
        logger.info("[Token refresh] %s\n%s", step, pretty_details)
    else:
        logger.info("[Token refresh] %s", step)


class TokenRefresher:
    """One-shot pipeline: resolve, fetch, exchange, publish.

    A refresher runs once. Any failure moves it to ``FAILED`` and raises
    :class:`RefreshFailed` carrying the failing stage and the original
    error; nothing is retried.
    """

    def __init__(
        self,
        settings: Settings,
        directory: IdentityDirectory,
        store: CredentialStore,
        exchanger: Optional[TokenExchanger] = None,
        cancellation: Optional[CancellationSignal] = None,
    ) -> None:
        self._settings = settings
        self._directory = directory
        self._store = store
        self._exchanger = exchanger or TokenExchanger(
            authority_host=settings.authority_host,
            resource_id=settings.resource_id,
        )
        self._cancellation = cancellation
        self.state = RefreshState.INIT
        self.history: List[RefreshState] = [RefreshState.INIT]

    def _enter(self, state: RefreshState) -> None:
        self.state = state
        self.history.append(state)

    def _step(self, state: RefreshState, fn: Callable[..., T], *args: Any) -> T:
        self._enter(state)
        try:
            if self._cancellation is None:
                return fn(*args)
            return self._cancellation.call(state.value, fn, *args)
        except RefreshError as exc:
            self._enter(RefreshState.FAILED)
            logger.error("Token refresh failed while %s: %s", state.value, exc)
            raise RefreshFailed(state.value, exc) from exc
        except Exception:
            self._enter(RefreshState.FAILED)
            raise

    def run(self) -> Any:
        """Perform the refresh and return the updated secret."""

        if self.state is not RefreshState.INIT:
            raise RuntimeError("a TokenRefresher can only run once")

        settings = self._settings

        binding = self._step(
            RefreshState.RESOLVING,
            resolve_identity_binding,
            self._directory,
            settings.namespace,
            settings.service_account_name,
        )
        _log_flow_step(
            "Resolved workload identity binding",
            {
                "client_id": binding.client_id,
                "service_account": f"{settings.namespace}/{settings.service_account_name}",
                "tenant_id": binding.tenant_id,
            },
        )

        projected = self._step(
            RefreshState.FETCHING,
            fetch_projected_token,
            self._directory,
            settings.namespace,
            settings.service_account_name,
            settings.audiences,
        )
        _log_flow_step(
            "Service account token issued",
            {"audiences": list(projected.audiences)},
        )

        access = self._step(
            RefreshState.EXCHANGING,
            self._exchanger.exchange,
            binding,
            StaticAssertionSource(projected),
        )
        _log_flow_step(
            "Service account token exchanged for access token",
            {
                "expires_in": access.expires_in,
                "scope": self._exchanger.scope,
                "token_claims": claims_for_logging(access.access_token),
            },
        )

        record = self._step(
            RefreshState.PUBLISHING,
            publish_access_token,
            self._store,
            settings.namespace,
            settings.secret_name,
            access.access_token,
            settings.password_key,
        )
        self._enter(RefreshState.DONE)
        _log_flow_step(
            "Access token published",
            {"key": settings.password_key, "secret": f"{settings.namespace}/{settings.secret_name}"},
        )
        return record
