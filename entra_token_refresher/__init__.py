"""Refresh an Argo CD repository credential with an Entra ID access token."""

from .orchestrator import RefreshState, TokenRefresher

__all__ = ["RefreshState", "TokenRefresher"]
