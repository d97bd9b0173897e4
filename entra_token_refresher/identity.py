"""Workload identity lookup and service account token issuance."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Mapping, Protocol, Sequence

from .errors import IssuanceError, LookupFailed, MissingMetadata, RefreshError

logger = logging.getLogger(__name__)

TENANT_ID_ANNOTATION = "azure.workload.identity/tenant-id"
CLIENT_ID_ANNOTATION = "azure.workload.identity/client-id"


class IdentityDirectory(Protocol):
    """Read service accounts and issue tokens on their behalf."""

    def lookup_principal(self, namespace: str, name: str) -> Mapping[str, str]:
        """Return the annotations of the service account ``name``."""

    def issue_token(self, namespace: str, name: str, audiences: Sequence[str]) -> str:
        """Return a token for ``name`` scoped to ``audiences``."""


@dataclass(frozen=True)
class IdentityBinding:
    """Entra ID tenant and application bound to a service account."""

    tenant_id: str
    client_id: str


@dataclass(frozen=True)
class ProjectedToken:
    """Short-lived service account token scoped to a list of audiences."""

    token: str = field(repr=False)
    audiences: tuple[str, ...] = ()


def resolve_identity_binding(
    directory: IdentityDirectory, namespace: str, name: str
) -> IdentityBinding:
    """Read the workload identity annotations from the service account."""

    try:
        annotations = directory.lookup_principal(namespace, name) or {}
    except RefreshError:
        raise
    except Exception as exc:
        raise LookupFailed(
            f"failed to read service account '{name}' in namespace '{namespace}': {exc}"
        ) from exc

    tenant_id = annotations.get(TENANT_ID_ANNOTATION)
    client_id = annotations.get(CLIENT_ID_ANNOTATION)

    missing = [
        key
        for key, value in ((TENANT_ID_ANNOTATION, tenant_id), (CLIENT_ID_ANNOTATION, client_id))
        if not value
    ]
    if missing:
        raise MissingMetadata(name, missing)

    return IdentityBinding(tenant_id=tenant_id, client_id=client_id)


def fetch_projected_token(
    directory: IdentityDirectory,
    namespace: str,
    name: str,
    audiences: Sequence[str],
) -> ProjectedToken:
    """Request a single service account token for ``audiences``.

    No retries are attempted; the API server receives exactly one
    TokenRequest per call.
    """

    audiences = tuple(audiences)
    if not audiences:
        raise ValueError("at least one token audience is required")

    try:
        token = directory.issue_token(namespace, name, audiences)
    except RefreshError:
        raise
    except Exception as exc:
        raise IssuanceError(
            f"token request for service account '{name}' failed: {exc}"
        ) from exc

    if not token:
        raise IssuanceError(
            f"token request for service account '{name}' returned no token"
        )

    logger.debug("Issued service account token for %s/%s", namespace, name)
    return ProjectedToken(token=token, audiences=audiences)
