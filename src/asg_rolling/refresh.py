"""
Rolling instance refresh across all Auto Scaling Groups of a cluster.

Groups are processed one after another: look up the latest refresh, skip the
group when it was refreshed recently, start a rolling refresh and wait for it
to settle before moving on. Any error from the group lookup or from a status
lookup aborts the whole run.
"""

import logging
import threading
import time
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, List, Mapping, Optional

from botocore.exceptions import BotoCoreError, ClientError

from .cancellation import CancelFlagResolver, NeverCancel
from .config import RefreshConfig
from .core import ASGRefresh
from .errors import RefreshInProgressError, ValidationError
from .events import NORMAL, WARNING, EventSink, LoggingEventSink
from .keys import CLUSTER_LABEL, owning_scope, validate_min_healthy_percentage
from .models import (
    RESOLVED_STATES,
    UNHEALTHY_STATES,
    Group,
    GroupOutcome,
    GroupResult,
    RefreshOperation,
    RefreshRequest,
    RefreshStatus,
    group_names,
)

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class WaitState(Enum):
    """Where the waiter stands after reading the latest refresh status."""

    POLLING = "polling"
    SUCCEEDED = "succeeded"
    RESOLVED = "resolved"


def classify(operation: Optional[RefreshOperation]) -> WaitState:
    if operation is None:
        return WaitState.POLLING
    if operation.status == RefreshStatus.SUCCESSFUL.value:
        return WaitState.SUCCEEDED
    if operation.status in RESOLVED_STATES:
        return WaitState.RESOLVED
    return WaitState.POLLING


class InstanceRefreshService:
    """Refreshes the instances of every ASG matching a tag filter.

    ``sleep`` and ``now`` replace the wall clock in tests. ``cancel_flag`` is
    consulted once per poll; a failing lookup counts as "not cancelled" so a
    flaky control plane never abandons a healthy refresh.
    """

    def __init__(
        self,
        asg: ASGRefresh,
        config: Optional[RefreshConfig] = None,
        cancel_flag: Optional[CancelFlagResolver] = None,
        events: Optional[EventSink] = None,
        namespace: str = "default",
        sleep: Callable[[float], None] = time.sleep,
        now: Callable[[], datetime] = utc_now,
    ):
        self.asg = asg
        self.config = config or RefreshConfig()
        self.cancel_flag = cancel_flag or NeverCancel()
        self.events = events or LoggingEventSink()
        self.namespace = namespace
        self.sleep = sleep
        self.now = now
        self._start_notified = False

    def refresh(
        self, tags: Mapping[str, str], min_healthy_percentage: Optional[int] = None
    ) -> List[GroupResult]:
        """Refresh all groups matching ``tags`` and return one result per group.

        ``min_healthy_percentage`` overrides the configured value for this run.
        """
        if min_healthy_percentage is None:
            min_healthy_percentage = self.config.min_healthy_percentage
        min_healthy_percentage = validate_min_healthy_percentage(min_healthy_percentage)
        if not tags.get(CLUSTER_LABEL):
            raise ValidationError(f"target filter must contain the {CLUSTER_LABEL} tag")

        groups = self.asg.list_groups(tags)
        if not groups:
            logger.info("No ASG matches %s, nothing to refresh", dict(tags))
            return []
        logger.info("Found %d ASG(s) to refresh: %s", len(groups), ", ".join(group_names(groups)))

        kind, name = owning_scope(tags)
        self._start_notified = False
        results = []
        for group in groups:
            results.append(self.refresh_group(group, kind, name, min_healthy_percentage))
        return results

    def refresh_group(
        self, group: Group, kind: str, name: str, min_healthy_percentage: int
    ) -> GroupResult:
        latest = self._describe(group.name)
        if self.recently_refreshed(latest):
            logger.info(
                "ASG %s already refreshed within the last %d minutes, skipping",
                group.name,
                self.config.recent_window // 60,
            )
            self._emit(NORMAL, "InstanceRefreshSkipped", f"ASG {group.name} was refreshed recently.")
            return GroupResult(group.name, GroupOutcome.SKIPPED, latest.refresh_id, latest.status)

        request = RefreshRequest(
            min_healthy_percentage=min_healthy_percentage,
            launch_template=group.current_launch_template(),
        )
        self.start(group.name, request)
        return self.wait(group.name, kind, name)

    def recently_refreshed(self, operation: Optional[RefreshOperation]) -> bool:
        if operation is None or operation.end_time is None:
            return False
        end_time = operation.end_time
        if end_time.tzinfo is None:
            end_time = end_time.replace(tzinfo=timezone.utc)
        cutoff = self.now() - timedelta(seconds=self.config.recent_window)
        return end_time >= cutoff

    def start(self, group_name: str, request: RefreshRequest) -> Optional[str]:
        """Start a refresh; failures are logged and the caller waits regardless."""
        try:
            refresh_id = self.asg.start_refresh(group_name, request)
        except RefreshInProgressError as e:
            logger.info("%s.", e)
            return None
        except (ClientError, BotoCoreError):
            logger.exception("Failed to start instance refresh for ASG %s", group_name)
            return None

        logger.info("Started instance refresh %s for ASG %s", refresh_id, group_name)
        self._notify_starting(group_name)
        return refresh_id

    def wait(self, group_name: str, kind: str, name: str) -> GroupResult:
        """Poll the latest refresh of the group until it settles.

        Raises TimeoutError once ``max_wait`` is exceeded; status lookup and cancel
        errors propagate.
        """
        elapsed = 0
        interval = self.config.poll_interval
        while True:
            operation = self._describe(group_name)
            state = classify(operation)
            refresh_id = operation.refresh_id if operation else None
            status = operation.status if operation else None

            if state is WaitState.SUCCEEDED:
                logger.info("Successfully refreshed all instances in ASG %s", group_name)
                self._emit(NORMAL, "InstancesRefreshSuccessful", f"Replaced all instances in ASG {group_name}.")
                return GroupResult(group_name, GroupOutcome.SUCCESSFUL, refresh_id, status)

            if state is WaitState.RESOLVED:
                logger.info("Instance refresh of ASG %s is %s", group_name, status)
                self._emit(NORMAL, "InstanceRefreshResolved", f"Instance refresh of ASG {group_name} is {status}.")
                return GroupResult(group_name, GroupOutcome.RESOLVED, refresh_id, status)

            level = logging.ERROR if status in UNHEALTHY_STATES else logging.INFO
            logger.log(
                level,
                "Refreshing instances in ASG %s, Status: %s (%s%% complete)",
                group_name,
                status or "not started",
                (operation.percentage_complete if operation else None) or 0,
            )

            if self.cancel_requested(kind, name):
                logger.info("Cancelling instance refresh of ASG %s on request of %s %s", group_name, kind, name)
                self.asg.cancel_refresh(group_name)
                self._emit(WARNING, "InstanceRefreshCancelled", f"Instance refresh of ASG {group_name} cancelled by operator.")
                return GroupResult(group_name, GroupOutcome.CANCELLED, refresh_id, status)

            if self.config.max_wait is not None and elapsed >= self.config.max_wait:
                raise TimeoutError(
                    f"Timed out after {elapsed}s waiting for instance refresh of ASG {group_name}"
                )
            self.sleep(interval)
            elapsed += interval

    def cancel_requested(self, kind: str, name: str) -> bool:
        try:
            return self.cancel_flag.is_cancel_requested(kind, name, self.namespace)
        except Exception:
            logger.warning(
                "Failed to look up cancel flag on %s %s/%s, continuing",
                kind,
                self.namespace,
                name,
                exc_info=True,
            )
            return False

    def _describe(self, group_name: str) -> Optional[RefreshOperation]:
        try:
            return self.asg.describe_latest_refresh(group_name)
        except (ClientError, BotoCoreError):
            logger.error("Failed to describe instance refreshes for ASG %s", group_name)
            raise

    def _notify_starting(self, group_name: str) -> None:
        if self._start_notified:
            return
        self._start_notified = True
        thread = threading.Thread(
            target=self._emit,
            args=(NORMAL, "InstanceRefreshIsStarting", f"Starting to replace instances, beginning with ASG {group_name}."),
            daemon=True,
        )
        thread.start()

    def _emit(self, severity: str, reason: str, message: str) -> None:
        try:
            self.events.event(severity, reason, message)
        except Exception:
            logger.exception("Failed to emit %s event", reason)
