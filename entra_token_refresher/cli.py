"""Command line entry point: run one token refresh and exit."""

from __future__ import annotations

import logging
import signal
import sys
from typing import Mapping, Optional

from kubernetes.config import ConfigException

from .cancellation import CancellationSignal
from .config import load_settings
from .errors import ConfigurationMissing, RefreshError
from .kube import KubernetesCredentialStore, KubernetesIdentityDirectory, build_core_v1_api
from .orchestrator import TokenRefresher


SUCCESS_MESSAGE = "Entra ID token refresh completed"


def _install_signal_handlers(cancellation: CancellationSignal) -> None:
    def _handler(signum, _frame) -> None:
        cancellation.cancel(f"received {signal.Signals(signum).name}")

    signal.signal(signal.SIGTERM, _handler)
    signal.signal(signal.SIGINT, _handler)


def main(environ: Optional[Mapping[str, str]] = None) -> int:
    try:
        settings = load_settings(environ)
    except ConfigurationMissing as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    cancellation = CancellationSignal(timeout=settings.timeout_seconds)
    _install_signal_handlers(cancellation)

    try:
        api = build_core_v1_api()
    except ConfigException as exc:
        print(f"Error: unable to load Kubernetes configuration: {exc}", file=sys.stderr)
        return 1

    refresher = TokenRefresher(
        settings,
        directory=KubernetesIdentityDirectory(api),
        store=KubernetesCredentialStore(api),
        cancellation=cancellation,
    )
    try:
        refresher.run()
    except RefreshError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(SUCCESS_MESSAGE)
    return 0


def run() -> None:
    sys.exit(main())
