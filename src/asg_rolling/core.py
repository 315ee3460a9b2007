"""
Core functionality for AWS ASG instance refresh.
"""

import logging
from typing import List, Mapping, Optional

import boto3
from botocore.exceptions import ClientError

from .errors import RefreshInProgressError
from .models import Group, RefreshOperation, RefreshRequest

logger = logging.getLogger(__name__)

REFRESH_IN_PROGRESS = "InstanceRefreshInProgress"
NO_ACTIVE_REFRESH = "ActiveInstanceRefreshNotFound"


def error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


class ASGRefresh:
    """Looks up, starts, describes and cancels AWS Auto Scaling Group instance refreshes."""

    def __init__(self, region: Optional[str] = None, client=None):
        self.client = client or boto3.client("autoscaling", region_name=region)

    def list_groups(self, tags: Mapping[str, str]) -> List[Group]:
        """Return every group carrying all of the given tag/value pairs."""
        filters = [
            {"Name": f"tag:{key}", "Values": [value]} for key, value in tags.items()
        ]
        paginator = self.client.get_paginator("describe_auto_scaling_groups")
        groups = []
        for page in paginator.paginate(Filters=filters):
            groups.extend(Group.from_api(item) for item in page["AutoScalingGroups"])
        return groups

    def describe_latest_refresh(self, asg_name: str) -> Optional[RefreshOperation]:
        """Return the most recent instance refresh of the group, if it ever had one."""
        response = self.client.describe_instance_refreshes(
            AutoScalingGroupName=asg_name,
            MaxRecords=1,
        )
        if response["InstanceRefreshes"]:
            return RefreshOperation.from_api(response["InstanceRefreshes"][0])
        return None

    def start_refresh(self, asg_name: str, request: RefreshRequest) -> str:
        """Start an instance refresh on the specified ASG and return its id.

        Raises RefreshInProgressError when AWS rejects the call because a
        refresh is already active; other client errors propagate.
        """
        params = {
            "AutoScalingGroupName": asg_name,
            "Strategy": request.strategy,
            "Preferences": request.preferences(),
        }
        desired = request.desired_configuration()
        if desired is not None:
            params["DesiredConfiguration"] = desired

        try:
            response = self.client.start_instance_refresh(**params)
        except ClientError as e:
            if error_code(e) == REFRESH_IN_PROGRESS:
                raise RefreshInProgressError(asg_name, e) from e
            raise
        return response["InstanceRefreshId"]

    def cancel_refresh(self, asg_name: str) -> Optional[str]:
        """Cancel the active instance refresh of the group.

        Returns the cancelled refresh id, or None when nothing was running.
        """
        try:
            response = self.client.cancel_instance_refresh(AutoScalingGroupName=asg_name)
        except ClientError as e:
            if error_code(e) == NO_ACTIVE_REFRESH:
                logger.info("No active instance refresh to cancel for ASG %s", asg_name)
                return None
            raise
        return response.get("InstanceRefreshId")
