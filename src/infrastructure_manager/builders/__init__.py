"""Builders converting between Runtime and Shoot documents."""

from .runtime import runtime_from_shoot
from .shoot import (
    ShootPipeline,
    build_create,
    build_patch,
    new_create_pipeline,
    new_patch_pipeline,
    validate_required_labels,
)

__all__ = [
    "ShootPipeline",
    "build_create",
    "build_patch",
    "new_create_pipeline",
    "new_patch_pipeline",
    "runtime_from_shoot",
    "validate_required_labels",
]
