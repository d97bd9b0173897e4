"""Kubernetes implementations of the identity directory and credential store."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Sequence

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from .errors import IssuanceError, LookupFailed, PrincipalNotFound, PublishFailed

logger = logging.getLogger(__name__)


def build_core_v1_api() -> client.CoreV1Api:
    """Return a CoreV1Api using in-cluster credentials, or the local kubeconfig."""

    try:
        config.load_incluster_config()
    except config.ConfigException:
        logger.debug("In-cluster configuration unavailable; loading kubeconfig")
        config.load_kube_config()
    return client.CoreV1Api()


def _api_error(exc: ApiException) -> str:
    reason = exc.reason or "error"
    return f"{exc.status} {reason}" if exc.status else reason


class KubernetesIdentityDirectory:
    """Service account lookups and TokenRequests through the core/v1 API."""

    def __init__(self, api: client.CoreV1Api):
        self._api = api

    def lookup_principal(self, namespace: str, name: str) -> Mapping[str, str]:
        try:
            service_account = self._api.read_namespaced_service_account(name, namespace)
        except ApiException as exc:
            if exc.status == 404:
                raise PrincipalNotFound(namespace, name) from exc
            raise LookupFailed(
                f"failed to read service account '{name}' in namespace "
                f"'{namespace}': {_api_error(exc)}"
            ) from exc

        metadata = service_account.metadata
        annotations: Dict[str, str] = {}
        if metadata is not None and metadata.annotations:
            annotations = dict(metadata.annotations)
        return annotations

    def issue_token(self, namespace: str, name: str, audiences: Sequence[str]) -> str:
        body = client.AuthenticationV1TokenRequest(
            spec=client.V1TokenRequestSpec(audiences=list(audiences))
        )
        try:
            response = self._api.create_namespaced_service_account_token(
                name, namespace, body
            )
        except ApiException as exc:
            raise IssuanceError(
                f"token request for service account '{name}' in namespace "
                f"'{namespace}' failed: {_api_error(exc)}"
            ) from exc

        status = response.status
        return status.token if status is not None else ""


class KubernetesCredentialStore:
    """Applies merge patches to secrets through the core/v1 API."""

    def __init__(self, api: client.CoreV1Api):
        self._api = api

    def patch_secret(self, namespace: str, name: str, patch: Mapping[str, Any]) -> Any:
        # A dict body is sent as a strategic merge patch, which only touches
        # the keys present in ``patch``.
        try:
            return self._api.patch_namespaced_secret(name, namespace, dict(patch))
        except ApiException as exc:
            raise PublishFailed(
                f"failed to patch secret '{name}' in namespace '{namespace}': "
                f"{_api_error(exc)}",
                status=exc.status,
            ) from exc
