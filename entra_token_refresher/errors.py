"""Exception types raised while refreshing the Entra ID credential."""

from __future__ import annotations

from typing import Optional, Sequence


class RefreshError(Exception):
    """Base class for every failure of a refresh run."""

    kind = "RefreshError"


class ConfigurationMissing(RefreshError):
    """Raised when a required environment variable is not set."""

    kind = "ConfigurationMissing"

    def __init__(self, name: str):
        super().__init__(f"Environment variable '{name}' must be set")
        self.name = name


class PrincipalNotFound(RefreshError):
    kind = "NotFound"

    def __init__(self, namespace: str, name: str):
        super().__init__(
            f"service account '{name}' not found in namespace '{namespace}'"
        )
        self.namespace = namespace
        self.name = name


class MissingMetadata(RefreshError):
    """Raised when the service account lacks workload identity annotations."""

    kind = "MissingMetadata"

    def __init__(self, name: str, missing_keys: Sequence[str]):
        keys = ", ".join(f"'{key}'" for key in missing_keys)
        noun = "annotation" if len(missing_keys) == 1 else "annotations"
        super().__init__(f"missing {noun} {keys} in service account '{name}'")
        self.name = name
        self.missing_keys = tuple(missing_keys)


class LookupFailed(RefreshError):
    kind = "LookupFailed"


class IssuanceError(RefreshError):
    """Raised when the API server refuses to issue a service account token."""

    kind = "IssuanceError"


class ExchangeFailed(RefreshError):
    """Raised when Entra ID rejects or cannot complete the token exchange."""

    kind = "ExchangeFailed"


class AssertionUnavailable(ExchangeFailed):
    kind = "AssertionUnavailable"


class PublishFailed(RefreshError):
    kind = "PublishFailed"

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class Cancelled(RefreshError):
    """Raised when a cancellation or deadline aborts an in-flight call."""

    kind = "Cancelled"


class RefreshFailed(RefreshError):
    """Wraps the first failure of a run together with the failing stage."""

    def __init__(self, stage: str, error: RefreshError):
        super().__init__(f"{stage}: {error}")
        self.stage = stage
        self.error = error

    @property
    def kind(self) -> str:  # type: ignore[override]
        return self.error.kind
