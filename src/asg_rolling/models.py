"""
Data types shared by the catalog lookup, the refresh status lookup and the orchestration.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple

LATEST_VERSION = "$Latest"
ROLLING_STRATEGY = "Rolling"


class RefreshStatus(str, Enum):
    """Statuses an instance refresh can report."""

    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    SUCCESSFUL = "Successful"
    CANCELLING = "Cancelling"
    CANCELLED = "Cancelled"
    FAILED = "Failed"
    ROLLBACK_FAILED = "RollbackFailed"
    ROLLBACK_IN_PROGRESS = "RollbackInProgress"
    ROLLBACK_SUCCESSFUL = "RollbackSuccessful"


RESOLVED_STATES = {RefreshStatus.CANCELLING.value, RefreshStatus.CANCELLED.value}

UNHEALTHY_STATES = {
    RefreshStatus.FAILED.value,
    RefreshStatus.ROLLBACK_FAILED.value,
    RefreshStatus.ROLLBACK_SUCCESSFUL.value,
}


class GroupOutcome(str, Enum):
    """What happened to a single group during a run."""

    SKIPPED = "skipped"
    SUCCESSFUL = "successful"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class LaunchTemplateRef:
    """Reference to an EC2 launch template."""

    template_id: Optional[str] = None
    template_name: Optional[str] = None
    version: Optional[str] = None

    @classmethod
    def from_api(cls, data: Optional[dict]) -> Optional["LaunchTemplateRef"]:
        if not data:
            return None
        return cls(
            template_id=data.get("LaunchTemplateId"),
            template_name=data.get("LaunchTemplateName"),
            version=data.get("Version"),
        )


@dataclass(frozen=True)
class Instance:
    instance_id: str
    launch_template: Optional[LaunchTemplateRef] = None


@dataclass(frozen=True)
class Group:
    """Snapshot of an Auto Scaling Group taken at lookup time."""

    name: str
    tags: Dict[str, str] = field(default_factory=dict)
    instances: Tuple[Instance, ...] = ()
    launch_template: Optional[LaunchTemplateRef] = None

    @classmethod
    def from_api(cls, data: dict) -> "Group":
        instances = tuple(
            Instance(
                instance_id=item["InstanceId"],
                launch_template=LaunchTemplateRef.from_api(item.get("LaunchTemplate")),
            )
            for item in data.get("Instances", [])
        )
        return cls(
            name=data["AutoScalingGroupName"],
            tags={tag["Key"]: tag["Value"] for tag in data.get("Tags", [])},
            instances=instances,
            launch_template=LaunchTemplateRef.from_api(data.get("LaunchTemplate")),
        )

    def current_launch_template(self) -> Optional[LaunchTemplateRef]:
        """Launch template the group's instances currently run on.

        The first instance carrying a template wins; the group-level template
        is used when no instance has one.
        """
        for instance in self.instances:
            if instance.launch_template is not None:
                return instance.launch_template
        return self.launch_template


@dataclass(frozen=True)
class RefreshOperation:
    """An instance refresh as last reported by the provider."""

    refresh_id: str
    group_name: str
    status: str
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    percentage_complete: Optional[int] = None
    status_reason: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict) -> "RefreshOperation":
        return cls(
            refresh_id=data.get("InstanceRefreshId", ""),
            group_name=data.get("AutoScalingGroupName", ""),
            status=data.get("Status", ""),
            start_time=data.get("StartTime"),
            end_time=data.get("EndTime"),
            percentage_complete=data.get("PercentageComplete"),
            status_reason=data.get("StatusReason"),
        )

    def to_dict(self) -> dict:
        return {
            "InstanceRefreshId": self.refresh_id,
            "AutoScalingGroupName": self.group_name,
            "Status": self.status,
            "StartTime": self.start_time.isoformat() if self.start_time else None,
            "EndTime": self.end_time.isoformat() if self.end_time else None,
            "PercentageComplete": self.percentage_complete,
            "StatusReason": self.status_reason,
        }


@dataclass
class RefreshRequest:
    """Parameters for starting an instance refresh on one group."""

    min_healthy_percentage: int = 90
    launch_template: Optional[LaunchTemplateRef] = None
    version: str = LATEST_VERSION
    strategy: str = ROLLING_STRATEGY

    def preferences(self) -> dict:
        return {"MinHealthyPercentage": self.min_healthy_percentage}

    def desired_configuration(self) -> Optional[dict]:
        if self.launch_template is None:
            return None
        template = {"Version": self.version}
        if self.launch_template.template_id:
            template["LaunchTemplateId"] = self.launch_template.template_id
        else:
            template["LaunchTemplateName"] = self.launch_template.template_name
        return {"LaunchTemplate": template}


@dataclass(frozen=True)
class GroupResult:
    group_name: str
    outcome: GroupOutcome
    refresh_id: Optional[str] = None
    status: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "AutoScalingGroupName": self.group_name,
            "Outcome": self.outcome.value,
            "InstanceRefreshId": self.refresh_id,
            "Status": self.status,
        }


def group_names(groups: List[Group]) -> List[str]:
    return [group.name for group in groups]
