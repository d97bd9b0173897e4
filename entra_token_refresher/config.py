"""Configuration handling for the token refresher."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from .errors import ConfigurationMissing


AZURE_DEVOPS_RESOURCE_ID = "499b84ac-1321-427f-aa17-267ca6975798"
DEFAULT_AUTHORITY_HOST = "https://login.microsoftonline.com"
DEFAULT_TOKEN_AUDIENCE = "api://AzureADTokenExchange"
DEFAULT_PASSWORD_KEY = "password"


@dataclass(frozen=True)
class Settings:
    """Runtime settings loaded once from the environment."""

    namespace: str
    secret_name: str
    service_account_name: str
    authority_host: str = DEFAULT_AUTHORITY_HOST
    audiences: tuple[str, ...] = field(default=(DEFAULT_TOKEN_AUDIENCE,))
    password_key: str = DEFAULT_PASSWORD_KEY
    timeout_seconds: Optional[float] = None
    log_level: str = "INFO"
    resource_id: str = AZURE_DEVOPS_RESOURCE_ID

    def authority(self, tenant_id: str) -> str:
        """Microsoft Entra authority URL for ``tenant_id``."""

        return f"{self.authority_host.rstrip('/')}/{tenant_id}"


def _parse_timeout(value: str | None) -> Optional[float]:
    if value is None:
        return None
    try:
        timeout = float(value)
    except ValueError:
        return None
    return timeout if timeout > 0 else None


def _parse_audiences(value: str | None) -> tuple[str, ...]:
    if not value:
        return (DEFAULT_TOKEN_AUDIENCE,)
    audiences = tuple(part.strip() for part in value.split(",") if part.strip())
    return audiences or (DEFAULT_TOKEN_AUDIENCE,)


def _required_env(environ: Mapping[str, str], name: str) -> str:
    value = environ.get(name)
    if not value:
        raise ConfigurationMissing(name)
    return value


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build :class:`Settings` from ``environ`` (defaults to ``os.environ``)."""

    if environ is None:
        environ = os.environ

    namespace = _required_env(environ, "ARGOCD_NAMESPACE")
    secret_name = _required_env(environ, "ARGOCD_SECRET")
    service_account_name = _required_env(environ, "ARGOCD_SA")

    return Settings(
        namespace=namespace,
        secret_name=secret_name,
        service_account_name=service_account_name,
        authority_host=environ.get("AZURE_AUTHORITY_HOST") or DEFAULT_AUTHORITY_HOST,
        audiences=_parse_audiences(environ.get("TOKEN_AUDIENCES")),
        password_key=environ.get("SECRET_PASSWORD_KEY") or DEFAULT_PASSWORD_KEY,
        timeout_seconds=_parse_timeout(environ.get("REFRESH_TIMEOUT_SECONDS")),
        log_level=(environ.get("LOG_LEVEL") or "INFO").upper(),
    )
