"""Kyma infrastructure manager operator."""

__version__ = "0.1.0"
