"""
Annotation-driven refresh of the ASGs owned by one cluster custom resource.

The resource must carry the instance-refresh annotation; its labels select the
ASGs and an optional annotation sets the minimum healthy percentage.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from kubernetes.client import ApiException

from . import keys
from .models import GroupResult
from .refresh import InstanceRefreshService
from .resources import ClusterResources

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RefreshPlan:
    tags: Dict[str, str]
    min_healthy_percentage: int


def refresh_plan(kind: str, resource: dict) -> Optional[RefreshPlan]:
    """Turn a custom resource into a refresh plan.

    Returns None when the resource does not request a refresh. Raises
    InvalidMinHealthyPercentage for a malformed percentage annotation and
    ValueError when the labels needed to select ASGs are missing.
    """
    metadata = resource.get("metadata", {})
    annotations = metadata.get("annotations")
    labels = metadata.get("labels")
    if not keys.instance_refresh_requested(annotations):
        return None

    percentage = keys.min_healthy_percentage(annotations)
    if kind == keys.CLUSTER_KIND:
        tags = keys.target_filter(metadata.get("name", ""))
    elif kind == keys.CONTROL_PLANE_KIND:
        tags = keys.target_filter(keys.cluster(labels), control_plane_id=keys.control_plane(labels))
    elif kind == keys.MACHINE_DEPLOYMENT_KIND:
        tags = keys.target_filter(
            keys.cluster(labels), machine_deployment_id=keys.machine_deployment(labels)
        )
    else:
        raise ValueError(f"unsupported resource kind {kind!r}")

    if len(tags) == 1 and kind != keys.CLUSTER_KIND:
        raise ValueError(f"{kind} {metadata.get('name')} lacks the label selecting its ASGs")
    return RefreshPlan(tags=tags, min_healthy_percentage=percentage)


def refresh_resource(
    resources: ClusterResources,
    service: InstanceRefreshService,
    kind: str,
    name: str,
) -> Optional[List[GroupResult]]:
    """Refresh the ASGs of the named resource if it asks for it.

    Returns None when the resource is gone or carries no refresh annotation.
    """
    try:
        resource = resources.get(kind, name, service.namespace)
    except ApiException as e:
        if e.status == 404:
            logger.info("%s %s/%s not found, nothing to do", kind, service.namespace, name)
            return None
        raise

    plan = refresh_plan(kind, resource)
    if plan is None:
        logger.info(
            "%s %s does not have required annotation '%s', ignoring",
            kind,
            name,
            keys.INSTANCE_REFRESH_ANNOTATION,
        )
        return None
    return service.refresh(plan.tags, min_healthy_percentage=plan.min_healthy_percentage)
