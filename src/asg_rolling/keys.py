"""
Label and annotation keys used on the cluster custom resources, and helpers
that turn them into refresh inputs.
"""

from typing import Dict, Mapping, Optional, Tuple

from .errors import InvalidMinHealthyPercentage

CLUSTER_LABEL = "giantswarm.io/cluster"
CONTROL_PLANE_LABEL = "giantswarm.io/control-plane"
MACHINE_DEPLOYMENT_LABEL = "giantswarm.io/machine-deployment"

INSTANCE_REFRESH_ANNOTATION = "alpha.giantswarm.io/instance-refresh"
CANCEL_INSTANCE_REFRESH_ANNOTATION = "alpha.giantswarm.io/cancel-instance-refresh"
MIN_HEALTHY_PERCENTAGE_ANNOTATION = "alpha.giantswarm.io/instance-refresh-min-healthy-percentage"

DEFAULT_MIN_HEALTHY_PERCENTAGE = 90

CLUSTER_KIND = "AWSCluster"
CONTROL_PLANE_KIND = "AWSControlPlane"
MACHINE_DEPLOYMENT_KIND = "AWSMachineDeployment"


def instance_refresh_requested(annotations: Optional[Mapping[str, str]]) -> bool:
    return INSTANCE_REFRESH_ANNOTATION in (annotations or {})


def cancel_requested(annotations: Optional[Mapping[str, str]]) -> bool:
    return CANCEL_INSTANCE_REFRESH_ANNOTATION in (annotations or {})


def validate_min_healthy_percentage(value) -> int:
    """Return ``value`` as an int, or raise if it is outside [0, 100]."""
    if isinstance(value, bool):
        raise InvalidMinHealthyPercentage(value, DEFAULT_MIN_HEALTHY_PERCENTAGE)
    try:
        percentage = int(value)
    except (TypeError, ValueError):
        raise InvalidMinHealthyPercentage(value, DEFAULT_MIN_HEALTHY_PERCENTAGE)
    if isinstance(value, float) and value != percentage:
        raise InvalidMinHealthyPercentage(value, DEFAULT_MIN_HEALTHY_PERCENTAGE)
    if percentage < 0 or percentage > 100:
        raise InvalidMinHealthyPercentage(value, DEFAULT_MIN_HEALTHY_PERCENTAGE)
    return percentage


def min_healthy_percentage(annotations: Optional[Mapping[str, str]]) -> int:
    """Read the minimum healthy percentage annotation.

    A missing annotation yields the default. A malformed one raises
    InvalidMinHealthyPercentage, whose ``default`` attribute the caller may
    choose to use.
    """
    value = (annotations or {}).get(MIN_HEALTHY_PERCENTAGE_ANNOTATION)
    if value is None:
        return DEFAULT_MIN_HEALTHY_PERCENTAGE
    return validate_min_healthy_percentage(value.strip())


def cluster(labels: Optional[Mapping[str, str]]) -> str:
    return (labels or {}).get(CLUSTER_LABEL, "")


def control_plane(labels: Optional[Mapping[str, str]]) -> str:
    return (labels or {}).get(CONTROL_PLANE_LABEL, "")


def machine_deployment(labels: Optional[Mapping[str, str]]) -> str:
    return (labels or {}).get(MACHINE_DEPLOYMENT_LABEL, "")


def target_filter(
    cluster_name: str,
    control_plane_id: Optional[str] = None,
    machine_deployment_id: Optional[str] = None,
) -> Dict[str, str]:
    """Build the tag filter selecting the groups of a cluster or one of its pools."""
    if not cluster_name:
        raise ValueError("cluster name must not be empty")
    if control_plane_id and machine_deployment_id:
        raise ValueError("select either a control plane or a machine deployment, not both")
    tags = {CLUSTER_LABEL: cluster_name}
    if control_plane_id:
        tags[CONTROL_PLANE_LABEL] = control_plane_id
    if machine_deployment_id:
        tags[MACHINE_DEPLOYMENT_LABEL] = machine_deployment_id
    return tags


def owning_scope(tags: Mapping[str, str]) -> Tuple[str, str]:
    """Resolve a target filter to the (kind, name) of the resource that owns it."""
    if tags.get(CONTROL_PLANE_LABEL):
        return CONTROL_PLANE_KIND, tags[CONTROL_PLANE_LABEL]
    if tags.get(MACHINE_DEPLOYMENT_LABEL):
        return MACHINE_DEPLOYMENT_KIND, tags[MACHINE_DEPLOYMENT_LABEL]
    return CLUSTER_KIND, tags.get(CLUSTER_LABEL, "")
