"""
Cancel-flag lookup against the cluster custom resources.
"""

import logging
from typing import Optional, Protocol

from .keys import cancel_requested
from .resources import ClusterResources

logger = logging.getLogger(__name__)


class CancelFlagResolver(Protocol):
    def is_cancel_requested(self, kind: str, name: str, namespace: str) -> bool:
        ...


class NeverCancel:
    """Resolver for runs that do not watch for cancellation."""

    def is_cancel_requested(self, kind: str, name: str, namespace: str) -> bool:
        return False


class KubernetesCancelFlag:
    """Reports whether the owning custom resource carries the cancel annotation.

    Lookup errors are raised; the orchestration decides how to treat them.
    """

    def __init__(self, resources: Optional[ClusterResources] = None):
        self.resources = resources or ClusterResources()

    def is_cancel_requested(self, kind: str, name: str, namespace: str) -> bool:
        resource = self.resources.get(kind, name, namespace)
        annotations = resource.get("metadata", {}).get("annotations")
        requested = cancel_requested(annotations)
        if requested:
            logger.debug("%s %s/%s requests cancellation", kind, namespace, name)
        return requested
