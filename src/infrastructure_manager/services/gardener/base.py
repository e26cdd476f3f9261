"""Gardener client interfaces."""

from __future__ import annotations

from typing import Any, Protocol


class ShootClient(Protocol):
    """Protocol defining the Shoot and Seed operations of the provisioning backend.

    Lookups of a missing Shoot raise ``ApiException`` with status 404.
    """

    def get_shoot(self, name: str) -> dict[str, Any]:
        """Get a Shoot by name."""
        ...

    def create_shoot(self, shoot: dict[str, Any]) -> dict[str, Any]:
        """Create a Shoot."""
        ...

    def update_shoot(self, shoot: dict[str, Any]) -> dict[str, Any]:
        """Replace a Shoot; the resourceVersion in ``shoot`` guards concurrent writes."""
        ...

    def patch_shoot(self, name: str, patch: dict[str, Any]) -> dict[str, Any]:
        """Merge-patch a Shoot."""
        ...

    def delete_shoot(self, name: str) -> None:
        """Delete a Shoot."""
        ...

    def list_seeds(self) -> list[dict[str, Any]]:
        """List the seeds offered by the backend."""
        ...


class KubeconfigProvider(Protocol):
    """Protocol for issuing short-lived kubeconfigs of a Shoot."""

    def fetch(self, shoot_name: str) -> str:
        """Issue a fresh kubeconfig for the Shoot."""
        ...
