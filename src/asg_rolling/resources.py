"""
Read access to the cluster custom resources (AWSCluster, AWSControlPlane,
AWSMachineDeployment).
"""

import logging
from typing import Optional

from kubernetes import client as k8s_client
from kubernetes import config as k8s_config
from kubernetes.config import ConfigException, new_client_from_config

from .keys import CLUSTER_KIND, CONTROL_PLANE_KIND, MACHINE_DEPLOYMENT_KIND

logger = logging.getLogger(__name__)

GROUP = "infrastructure.giantswarm.io"
VERSION = "v1alpha3"

PLURALS = {
    CLUSTER_KIND: "awsclusters",
    CONTROL_PLANE_KIND: "awscontrolplanes",
    MACHINE_DEPLOYMENT_KIND: "awsmachinedeployments",
}


class ClusterResources:
    """Fetches cluster custom resources as plain dicts.

    The API client is built on first use from the kubeconfig (optionally a
    named context). Without a context and without a kubeconfig, the
    in-cluster service account configuration is used.
    """

    def __init__(self, context: Optional[str] = None, api: Optional[k8s_client.CustomObjectsApi] = None):
        self.context = context
        self._api = api

    @property
    def api(self) -> k8s_client.CustomObjectsApi:
        if self._api is None:
            self._api = k8s_client.CustomObjectsApi(self._api_client())
        return self._api

    def _api_client(self) -> k8s_client.ApiClient:
        try:
            return new_client_from_config(context=self.context)
        except ConfigException:
            if self.context is not None:
                raise
            logger.debug("No kubeconfig found, using in-cluster configuration")
            k8s_config.load_incluster_config()
            return k8s_client.ApiClient()

    def get(self, kind: str, name: str, namespace: str) -> dict:
        try:
            plural = PLURALS[kind]
        except KeyError:
            raise ValueError(f"unsupported resource kind {kind!r}")
        return self.api.get_namespaced_custom_object(
            group=GROUP,
            version=VERSION,
            namespace=namespace,
            plural=plural,
            name=name,
        )
