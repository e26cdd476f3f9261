"""Provider type table.

Provider specific Shoot settings are looked up here instead of branching on
the provider type string inside the extenders; supporting a new hyperscaler
means adding a row.
"""

from __future__ import annotations

from dataclasses import dataclass

TYPE_AWS = "aws"
TYPE_AZURE = "azure"
TYPE_GCP = "gcp"
TYPE_OPENSTACK = "openstack"


@dataclass(frozen=True)
class Hyperscaler:
    """Static settings of one provider type."""

    provider_type: str
    cloud_profile: str
    exposure_class: str | None = None


HYPERSCALERS: dict[str, Hyperscaler] = {
    TYPE_AWS: Hyperscaler(TYPE_AWS, cloud_profile="aws"),
    TYPE_AZURE: Hyperscaler(TYPE_AZURE, cloud_profile="az"),
    TYPE_GCP: Hyperscaler(TYPE_GCP, cloud_profile="gcp"),
    TYPE_OPENSTACK: Hyperscaler(
        TYPE_OPENSTACK,
        cloud_profile="converged-cloud-kyma",
        exposure_class="converged-cloud-internet",
    ),
}


def get_hyperscaler(provider_type: str) -> Hyperscaler:
    """Return the settings of a provider type.

    Raises:
        ValueError: If the provider type is not supported
    """
    try:
        return HYPERSCALERS[provider_type]
    except KeyError:
        raise ValueError(f"Unsupported provider type: {provider_type!r}") from None
