"""Gardener API access."""

from .base import KubeconfigProvider, ShootClient
from .client import GardenerClient, GardenerKubeconfigProvider, create_gardener_api

__all__ = [
    "ShootClient",
    "KubeconfigProvider",
    "GardenerClient",
    "GardenerKubeconfigProvider",
    "create_gardener_api",
]
