"""Write the refreshed access token into the target secret."""

from __future__ import annotations

import base64
import logging
from typing import Any, Dict, Mapping, Protocol

from .config import DEFAULT_PASSWORD_KEY
from .errors import PublishFailed, RefreshError

logger = logging.getLogger(__name__)


class CredentialStore(Protocol):
    """Applies merge patches to stored secrets."""

    def patch_secret(self, namespace: str, name: str, patch: Mapping[str, Any]) -> Any:
        """Merge ``patch`` into the secret and return the updated record."""


def build_password_patch(
    access_token: str, key: str = DEFAULT_PASSWORD_KEY
) -> Dict[str, Dict[str, str]]:
    """Return a merge patch setting ``data[key]`` to the base64 encoded token."""

    encoded = base64.b64encode(access_token.encode("utf-8")).decode("ascii")
    return {"data": {key: encoded}}


def publish_access_token(
    store: CredentialStore,
    namespace: str,
    secret_name: str,
    access_token: str,
    key: str = DEFAULT_PASSWORD_KEY,
) -> Any:
    """Patch a single field of the secret, leaving its other keys untouched."""

    patch = build_password_patch(access_token, key)
    try:
        record = store.patch_secret(namespace, secret_name, patch)
    except RefreshError:
        raise
    except Exception as exc:
        raise PublishFailed(
            f"failed to patch secret '{secret_name}' in namespace '{namespace}': {exc}"
        ) from exc

    logger.info("Updated key '%s' of secret %s/%s", key, namespace, secret_name)
    return record
