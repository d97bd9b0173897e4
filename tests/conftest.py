"""Shared fixtures: in-memory stand-ins for the cluster and Entra ID."""

from __future__ import annotations

import base64
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pytest

from entra_token_refresher.config import Settings
from entra_token_refresher.errors import PrincipalNotFound, PublishFailed
from entra_token_refresher.exchanger import FederatedAccessToken
from entra_token_refresher.identity import CLIENT_ID_ANNOTATION, TENANT_ID_ANNOTATION


class FakeDirectory:
    """Service accounts keyed by ``(namespace, name)``."""

    def __init__(self, accounts: Optional[Dict[tuple, Dict[str, str]]] = None, token: str = "PT"):
        self.accounts = accounts or {}
        self.token = token
        self.issue_error: Optional[Exception] = None
        self.lookup_calls: List[tuple] = []
        self.issue_calls: List[tuple] = []

    def lookup_principal(self, namespace: str, name: str) -> Mapping[str, str]:
        self.lookup_calls.append((namespace, name))
        try:
            return self.accounts[(namespace, name)]
        except KeyError:
            raise PrincipalNotFound(namespace, name) from None

    def issue_token(self, namespace: str, name: str, audiences: Sequence[str]) -> str:
        self.issue_calls.append((namespace, name, tuple(audiences)))
        if self.issue_error is not None:
            raise self.issue_error
        return self.token


class FakeStore:
    """Secrets with merge-patch semantics on their ``data`` mapping."""

    def __init__(self, secrets: Optional[Dict[tuple, Dict[str, str]]] = None):
        self.secrets = secrets or {}
        self.patch_error: Optional[Exception] = None
        self.patch_calls: List[tuple] = []

    def patch_secret(self, namespace: str, name: str, patch: Mapping[str, Any]) -> Any:
        self.patch_calls.append((namespace, name, patch))
        if self.patch_error is not None:
            raise self.patch_error
        if (namespace, name) not in self.secrets:
            raise PublishFailed(f"secret '{name}' not found", status=404)
        data = self.secrets[(namespace, name)]
        data.update(patch.get("data", {}))
        return {"metadata": {"namespace": namespace, "name": name}, "data": dict(data)}


class FakeExchanger:
    """Records exchanges and returns a fixed access token."""

    scope = "499b84ac-1321-427f-aa17-267ca6975798/.default"

    def __init__(self, access_token: str = "AT"):
        self.access_token = access_token
        self.error: Optional[Exception] = None
        self.calls: List[tuple] = []
        self.hook = None

    def exchange(self, binding, assertion_source):
        self.calls.append((binding.tenant_id, binding.client_id, assertion_source.provide()))
        if self.hook is not None:
            self.hook()
        if self.error is not None:
            raise self.error
        return FederatedAccessToken(access_token=self.access_token, expires_in=3599)


def b64(value: str) -> str:
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


@pytest.fixture
def settings() -> Settings:
    return Settings(namespace="ns1", secret_name="s1", service_account_name="sa1")


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory(
        {("ns1", "sa1"): {TENANT_ID_ANNOTATION: "T", CLIENT_ID_ANNOTATION: "C"}},
        token="PT",
    )


@pytest.fixture
def store() -> FakeStore:
    return FakeStore({("ns1", "s1"): {"password": b64("old"), "username": b64("argocd")}})


@pytest.fixture
def exchanger() -> FakeExchanger:
    return FakeExchanger("AT")
