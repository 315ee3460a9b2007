"""
Tests for the annotation-driven refresh of a single cluster resource.
"""

import pytest
from unittest.mock import MagicMock
from kubernetes.client import ApiException
from asg_rolling.errors import InvalidMinHealthyPercentage
from asg_rolling.keys import INSTANCE_REFRESH_ANNOTATION, MIN_HEALTHY_PERCENTAGE_ANNOTATION
from asg_rolling.reconcile import RefreshPlan, refresh_plan, refresh_resource


def custom_object(name, annotations=None, labels=None):
    return {"metadata": {"name": name, "annotations": annotations, "labels": labels}}


REFRESH = {INSTANCE_REFRESH_ANNOTATION: ""}


class TestRefreshPlan:
    """Test cases for turning a resource into a refresh plan."""

    def test_no_refresh_annotation(self):
        assert refresh_plan("AWSCluster", custom_object("x5o6r")) is None
        assert refresh_plan("AWSCluster", {}) is None

    def test_cluster(self):
        plan = refresh_plan("AWSCluster", custom_object("x5o6r", REFRESH))
        assert plan == RefreshPlan(tags={"giantswarm.io/cluster": "x5o6r"}, min_healthy_percentage=90)

    def test_control_plane(self):
        resource = custom_object(
            "no7t8",
            {INSTANCE_REFRESH_ANNOTATION: "", MIN_HEALTHY_PERCENTAGE_ANNOTATION: "66"},
            {"giantswarm.io/cluster": "x5o6r", "giantswarm.io/control-plane": "no7t8"},
        )
        plan = refresh_plan("AWSControlPlane", resource)
        assert plan.tags == {"giantswarm.io/cluster": "x5o6r", "giantswarm.io/control-plane": "no7t8"}
        assert plan.min_healthy_percentage == 66

    def test_machine_deployment(self):
        resource = custom_object(
            "m4gb8",
            REFRESH,
            {"giantswarm.io/cluster": "x5o6r", "giantswarm.io/machine-deployment": "m4gb8"},
        )
        plan = refresh_plan("AWSMachineDeployment", resource)
        assert plan.tags == {"giantswarm.io/cluster": "x5o6r", "giantswarm.io/machine-deployment": "m4gb8"}

    def test_invalid_percentage_carries_default(self):
        resource = custom_object("x5o6r", {INSTANCE_REFRESH_ANNOTATION: "", MIN_HEALTHY_PERCENTAGE_ANNOTATION: "120"})
        with pytest.raises(InvalidMinHealthyPercentage) as excinfo:
            refresh_plan("AWSCluster", resource)
        assert excinfo.value.default == 90

    def test_machine_deployment_without_pool_label(self):
        resource = custom_object("m4gb8", REFRESH, {"giantswarm.io/cluster": "x5o6r"})
        with pytest.raises(ValueError, match="lacks the label"):
            refresh_plan("AWSMachineDeployment", resource)

    def test_control_plane_without_cluster_label(self):
        resource = custom_object("no7t8", REFRESH, {"giantswarm.io/control-plane": "no7t8"})
        with pytest.raises(ValueError):
            refresh_plan("AWSControlPlane", resource)


class TestRefreshResource:
    """Test cases for refreshing the ASGs of a named resource."""

    def setup_method(self):
        self.resources = MagicMock()
        self.service = MagicMock()
        self.service.namespace = "org-acme"

    def test_annotated_resource_refreshed(self):
        self.resources.get.return_value = custom_object(
            "m4gb8",
            {INSTANCE_REFRESH_ANNOTATION: "", MIN_HEALTHY_PERCENTAGE_ANNOTATION: "75"},
            {"giantswarm.io/cluster": "x5o6r", "giantswarm.io/machine-deployment": "m4gb8"},
        )

        result = refresh_resource(self.resources, self.service, "AWSMachineDeployment", "m4gb8")

        assert result is self.service.refresh.return_value
        self.resources.get.assert_called_once_with("AWSMachineDeployment", "m4gb8", "org-acme")
        self.service.refresh.assert_called_once_with(
            {"giantswarm.io/cluster": "x5o6r", "giantswarm.io/machine-deployment": "m4gb8"},
            min_healthy_percentage=75,
        )

    def test_resource_without_annotation_skipped(self):
        self.resources.get.return_value = custom_object("x5o6r")

        assert refresh_resource(self.resources, self.service, "AWSCluster", "x5o6r") is None
        self.service.refresh.assert_not_called()

    def test_missing_resource_skipped(self):
        self.resources.get.side_effect = ApiException(status=404, reason="Not Found")

        assert refresh_resource(self.resources, self.service, "AWSCluster", "x5o6r") is None
        self.service.refresh.assert_not_called()

    def test_api_error_propagates(self):
        self.resources.get.side_effect = ApiException(status=500, reason="Internal Server Error")

        with pytest.raises(ApiException):
            refresh_resource(self.resources, self.service, "AWSCluster", "x5o6r")
        self.service.refresh.assert_not_called()

    def test_invalid_percentage_stops_before_refresh(self):
        self.resources.get.return_value = custom_object(
            "x5o6r", {INSTANCE_REFRESH_ANNOTATION: "", MIN_HEALTHY_PERCENTAGE_ANNOTATION: "-5"}
        )

        with pytest.raises(InvalidMinHealthyPercentage):
            refresh_resource(self.resources, self.service, "AWSCluster", "x5o6r")
        self.service.refresh.assert_not_called()
