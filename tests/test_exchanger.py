from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from entra_token_refresher.errors import AssertionUnavailable, ExchangeFailed
from entra_token_refresher.exchanger import (
    StaticAssertionSource,
    TokenExchanger,
    build_default_scope,
)
from entra_token_refresher.identity import IdentityBinding, ProjectedToken

RESOURCE = "499b84ac-1321-427f-aa17-267ca6975798"


class CountingAssertionSource:
    def __init__(self, value: str = "PT"):
        self.value = value
        self.calls = 0

    def provide(self) -> str:
        self.calls += 1
        return self.value


class FailingAssertionSource:
    def provide(self) -> str:
        raise AssertionUnavailable("no token available")


def _app_factory(result):
    """Return a factory whose application calls the assertion like MSAL does."""

    created = []

    def factory(client_id, authority, client_credential):
        app = MagicMock()
        app.client_id = client_id
        app.authority = authority
        app.client_credential = client_credential

        def acquire_token_for_client(scopes):
            client_credential["client_assertion"]()
            return result

        app.acquire_token_for_client.side_effect = acquire_token_for_client
        created.append(app)
        return app

    return factory, created


def test_build_default_scope_appends_suffix():
    assert build_default_scope(RESOURCE) == f"{RESOURCE}/.default"


def test_build_default_scope_is_idempotent():
    once = build_default_scope(RESOURCE)

    assert build_default_scope(once) == once
    assert build_default_scope("https://vault.azure.net/.default") == "https://vault.azure.net/.default"


def test_exchange_returns_access_token():
    factory, created = _app_factory({"access_token": "AT", "expires_in": 3599, "token_type": "Bearer"})
    exchanger = TokenExchanger(app_factory=factory)
    source = CountingAssertionSource("PT")

    token = exchanger.exchange(IdentityBinding("T", "C"), source)

    assert token.access_token == "AT"
    assert token.expires_in == 3599
    assert "AT" not in repr(token)
    assert source.calls == 1
    (app,) = created
    assert app.client_id == "C"
    assert app.authority == "https://login.microsoftonline.com/T"
    app.acquire_token_for_client.assert_called_once_with(scopes=[f"{RESOURCE}/.default"])


def test_exchange_builds_fresh_application_per_attempt():
    factory, created = _app_factory({"access_token": "AT"})
    exchanger = TokenExchanger(app_factory=factory)
    source = CountingAssertionSource()

    exchanger.exchange(IdentityBinding("T", "C"), source)
    exchanger.exchange(IdentityBinding("T", "C"), source)

    assert len(created) == 2
    assert source.calls == 2


def test_exchange_uses_configured_authority_host():
    factory, created = _app_factory({"access_token": "AT"})
    exchanger = TokenExchanger(authority_host="https://login.microsoftonline.us/", app_factory=factory)

    exchanger.exchange(IdentityBinding("T", "C"), CountingAssertionSource())

    assert created[0].authority == "https://login.microsoftonline.us/T"


def test_exchange_error_is_reported_without_assertion():
    factory, _ = _app_factory(
        {
            "error": "invalid_client",
            "error_description": "AADSTS700024: Client assertion PT-secret is not within its valid time range.",
            "correlation_id": "abc-123",
        }
    )
    exchanger = TokenExchanger(app_factory=factory)

    with pytest.raises(ExchangeFailed) as exc_info:
        exchanger.exchange(IdentityBinding("T", "C"), CountingAssertionSource("PT-secret"))

    message = str(exc_info.value)
    assert exc_info.value.kind == "ExchangeFailed"
    assert "invalid_client" in message
    assert "abc-123" in message
    assert "PT-secret" not in message


def test_exchange_without_access_token_fails():
    factory, _ = _app_factory({"token_type": "Bearer"})

    with pytest.raises(ExchangeFailed, match="no access token"):
        TokenExchanger(app_factory=factory).exchange(IdentityBinding("T", "C"), CountingAssertionSource())


def test_exchange_wraps_transport_errors():
    factory = MagicMock(side_effect=ConnectionError("PT-secret rejected by proxy"))

    with pytest.raises(ExchangeFailed) as exc_info:
        TokenExchanger(app_factory=factory).exchange(
            IdentityBinding("T", "C"), CountingAssertionSource("PT-secret")
        )

    assert exc_info.value.__cause__ is None


def test_exchange_propagates_unavailable_assertion():
    factory, _ = _app_factory({"access_token": "AT"})

    with pytest.raises(AssertionUnavailable):
        TokenExchanger(app_factory=factory).exchange(IdentityBinding("T", "C"), FailingAssertionSource())


def test_default_factory_is_msal_confidential_client():
    with patch("entra_token_refresher.exchanger.msal.ConfidentialClientApplication") as app_cls:
        app_cls.return_value.acquire_token_for_client.return_value = {"access_token": "AT"}
        exchanger = TokenExchanger()

        exchanger.exchange(IdentityBinding("T", "C"), CountingAssertionSource())

    kwargs = app_cls.call_args.kwargs
    assert kwargs["client_id"] == "C"
    assert callable(kwargs["client_credential"]["client_assertion"])


def test_static_assertion_source_returns_projected_token():
    source = StaticAssertionSource(ProjectedToken(token="PT", audiences=("aud",)))

    assert source.provide() == "PT"
    assert source.provide() == "PT"


def test_static_assertion_source_rejects_empty_token():
    with pytest.raises(AssertionUnavailable):
        StaticAssertionSource(ProjectedToken(token="")).provide()
