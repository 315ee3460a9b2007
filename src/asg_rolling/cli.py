"""
Command line interface for rolling AWS ASG instance refreshes.
"""

import sys

import click
import json
from botocore.exceptions import BotoCoreError, ClientError
from kubernetes.client import ApiException

from .cancellation import KubernetesCancelFlag, NeverCancel
from .config import DEFAULT_POLL_INTERVAL, DEFAULT_RECENT_WINDOW, RefreshConfig
from .core import ASGRefresh
from .errors import ValidationError
from .keys import (
    CLUSTER_KIND,
    CONTROL_PLANE_KIND,
    DEFAULT_MIN_HEALTHY_PERCENTAGE,
    MACHINE_DEPLOYMENT_KIND,
    target_filter,
)
from .log_utils import setup_logging
from .reconcile import refresh_resource
from .refresh import InstanceRefreshService
from .resources import ClusterResources

region_option = click.option(
    "--region",
    default=None,
    envvar="AWS_DEFAULT_REGION",
    help="AWS region (defaults to environment/instance profile)",
)

RUN_OPTIONS = [
    click.option(
        "--namespace",
        default="default",
        show_default=True,
        envvar="CLUSTER_NAMESPACE",
        help="Namespace of the cluster custom resources",
    ),
    click.option(
        "--interval",
        type=int,
        default=DEFAULT_POLL_INTERVAL,
        show_default=True,
        envvar="CHECK_INTERVAL",
        help="Polling interval in seconds",
    ),
    click.option(
        "--max-wait",
        type=int,
        default=None,
        envvar="CHECK_TIMEOUT",
        help="Maximum wait time per ASG in seconds (default: wait until AWS settles)",
    ),
    click.option(
        "--recent-window",
        type=int,
        default=DEFAULT_RECENT_WINDOW,
        show_default=True,
        envvar="RECENT_WINDOW",
        help="Skip ASGs refreshed within this many seconds",
    ),
    click.option(
        "--kube-context",
        default=None,
        envvar="KUBE_CONTEXT",
        help="kubeconfig context (default: current context, or in-cluster configuration)",
    ),
    region_option,
]


def run_options(func):
    for option in reversed(RUN_OPTIONS):
        func = option(func)
    return func


def _exit_on_error(e):
    click.echo(str(e), err=True)
    sys.exit(1)


@click.group()
@click.option("-v", "--verbose", is_flag=True, default=False, help="Enable debug logging")
def main(verbose):
    """Rolling instance refresh for the Auto Scaling Groups of a cluster."""
    setup_logging(verbose=verbose)


@main.command()
@click.argument("cluster", envvar="CLUSTER_ID")
@click.option(
    "--control-plane",
    default=None,
    envvar="CONTROL_PLANE_ID",
    help="Only refresh the ASGs of this control plane",
)
@click.option(
    "--machine-deployment",
    default=None,
    envvar="MACHINE_DEPLOYMENT_ID",
    help="Only refresh the ASGs of this machine deployment",
)
@click.option(
    "--min-healthy-percentage",
    type=int,
    default=DEFAULT_MIN_HEALTHY_PERCENTAGE,
    show_default=True,
    envvar="MIN_HEALTHY_PERCENTAGE",
    help="Minimum percentage of healthy instances during refresh",
)
@click.option(
    "--no-cancel-check",
    is_flag=True,
    default=False,
    help="Do not watch the cluster resources for the cancel annotation",
)
@run_options
def refresh(
    cluster,
    control_plane,
    machine_deployment,
    min_healthy_percentage,
    no_cancel_check,
    namespace,
    interval,
    max_wait,
    recent_window,
    kube_context,
    region,
):
    """Refresh the instances of every ASG of a cluster, one ASG at a time.

    CLUSTER: The cluster ID the ASGs are tagged with

    Examples:

        asg-rolling refresh x5o6r

        asg-rolling refresh x5o6r --machine-deployment m4gb8 --min-healthy-percentage 80

        asg-rolling refresh x5o6r --control-plane no7t8 --max-wait 7200
    """
    try:
        tags = target_filter(cluster, control_plane, machine_deployment)
    except ValueError as e:
        raise click.BadParameter(str(e))

    config = RefreshConfig(
        min_healthy_percentage=min_healthy_percentage,
        poll_interval=interval,
        recent_window=recent_window,
        max_wait=max_wait,
    )
    if no_cancel_check:
        cancel_flag = NeverCancel()
    else:
        cancel_flag = KubernetesCancelFlag(ClusterResources(context=kube_context))
    service = InstanceRefreshService(
        ASGRefresh(region=region),
        config=config,
        cancel_flag=cancel_flag,
        namespace=namespace,
    )
    try:
        results = service.refresh(tags)
    except (ValidationError, TimeoutError, ClientError, BotoCoreError) as e:
        _exit_on_error(e)

    click.echo(json.dumps([result.to_dict() for result in results], indent=2))


@main.command()
@click.argument(
    "kind",
    type=click.Choice([CLUSTER_KIND, CONTROL_PLANE_KIND, MACHINE_DEPLOYMENT_KIND]),
)
@click.argument("name")
@run_options
def reconcile(kind, name, namespace, interval, max_wait, recent_window, kube_context, region):
    """Refresh the ASGs of a cluster resource carrying the refresh annotation.

    KIND: AWSCluster, AWSControlPlane or AWSMachineDeployment

    NAME: The name of the custom resource

    The minimum healthy percentage is read from the resource's
    annotations. Nothing happens when the refresh annotation is absent.

    Examples:

        asg-rolling reconcile AWSMachineDeployment m4gb8 --namespace org-acme
    """
    resources = ClusterResources(context=kube_context)
    config = RefreshConfig(
        poll_interval=interval,
        recent_window=recent_window,
        max_wait=max_wait,
    )
    service = InstanceRefreshService(
        ASGRefresh(region=region),
        config=config,
        cancel_flag=KubernetesCancelFlag(resources),
        namespace=namespace,
    )
    try:
        results = refresh_resource(resources, service, kind, name)
    except (ValueError, TimeoutError, ClientError, BotoCoreError, ApiException) as e:
        _exit_on_error(e)

    if results is None:
        click.echo(f"{kind} {namespace}/{name} does not request an instance refresh", err=True)
        return
    click.echo(json.dumps([result.to_dict() for result in results], indent=2))


@main.command()
@click.argument("asg_name", envvar="ASG_NAME")
@region_option
def status(asg_name, region):
    """Show the latest instance refresh of an Auto Scaling Group.

    ASG_NAME: The name of the Auto Scaling Group
    """
    refresher = ASGRefresh(region=region)
    operation = refresher.describe_latest_refresh(asg_name)
    if operation is None:
        click.echo(f"No instance refresh found for ASG {asg_name}", err=True)
        sys.exit(1)
    click.echo(json.dumps(operation.to_dict(), indent=2))


@main.command()
@click.argument("asg_name", envvar="ASG_NAME")
@region_option
def cancel(asg_name, region):
    """Cancel the active instance refresh of an Auto Scaling Group.

    ASG_NAME: The name of the Auto Scaling Group
    """
    refresher = ASGRefresh(region=region)
    refresh_id = refresher.cancel_refresh(asg_name)
    click.echo(
        json.dumps({"AutoScalingGroupName": asg_name, "InstanceRefreshId": refresh_id}, indent=2)
    )


if __name__ == "__main__":
    main()
