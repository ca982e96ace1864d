"""
Node decommission: detach from its cluster, deauthorize from the control plane
and remove the hostagent.

Steps, in order:
- discover the host IP and platform
- stop here if the hostagent is not installed
- detach from the cluster (if a member), then deauthorize (if registered)
- stop services, purge the hostagent package and delete its logs
- optionally purge the local configuration and state directories
"""
import logging
import time
from typing import Optional

from nodectl.utils import console, success

from .client import Client
from .errors import ClusterOperationError, CommandError, ExecutorError, NodeCtlError
from .models import DecommissionOutcome, NodeInfo, RunContext
from .platform import Platform, detect, platform_for

logger = logging.getLogger("nodectl.decommission")

HOSTAGENT_SERVICES = ['pf9-hostagent', 'pf9-nodeletd', 'pf9-kubelet']

PF9_LOG_FILES = [
    '/var/log/pf9',
    '/var/opt/pf9/hostagent',
    '/etc/pf9/host_id.conf',
    '/opt/pf9/hostagent',
]

PF9_STATE_DIRS = ['/etc/pf9', '/var/opt/pf9', '$HOME/pf9']


def discover_host_ip(ctx: RunContext) -> str:
    """Return the first address reported by the host."""
    try:
        output = ctx.executor.run_with_stdout('bash', '-c', 'hostname -I')
    except CommandError as e:
        raise ExecutorError(f"unable to get host ip: {e}") from e
    addresses = output.split()
    if not addresses:
        raise ExecutorError("unable to get host ip: no address reported")
    if len(addresses) > 1:
        logger.debug(f"Host reports several addresses {addresses}, using {addresses[0]}")
    return addresses[0]


def remove_hostagent(platform: Platform) -> None:
    """Stop the hostagent services, purge the package and delete its logs."""
    console.print("Removing pf9-hostagent (this might take a few minutes...)")
    for service in HOSTAGENT_SERVICES:
        if not platform.stop_service(service):
            logger.debug(f"Continuing after failing to stop {service}")
    if platform.remove_agent_package():
        success("Removed hostagent")
    else:
        logger.warning("Failed to purge the hostagent package, removing logs anyway")
    console.print("Removing logs...")
    for path in PF9_LOG_FILES:
        platform.remove_path(path)


def remove_pf9_installation(platform: Platform) -> None:
    """Delete the hostagent configuration, state and download directories."""
    for path in PF9_STATE_DIRS:
        console.print(f"Removing {path}")
        platform.remove_path(path)


def _detach(clients: Client, ctx: RunContext, node: NodeInfo, host_id: str) -> None:
    console.print(f"Node is connected to {node.cluster_name} cluster")
    console.print("Detaching node from cluster...")
    try:
        clients.qbert.detach_node(node.cluster_uuid, ctx.auth.project_id, ctx.auth.token, host_id)
    except NodeCtlError as e:
        raise ClusterOperationError('detach', f"Failed to detach host from cluster: {e}") from e
    success("Detached node from cluster")


def _deauthorize(clients: Client, ctx: RunContext, host_id: str) -> None:
    console.print("Deauthorizing node from UI...")
    try:
        clients.qbert.deauthorize_node(host_id, ctx.auth.token)
    except NodeCtlError as e:
        raise ClusterOperationError('deauthorize', f"Failed to deauthorize node: {e}") from e
    success("Deauthorized node from UI")


def decommission_node(ctx: RunContext, clients: Client, remove_pf9: bool = False,
                      settle_delay: Optional[int] = None) -> DecommissionOutcome:
    """Decommission the target host.

    Args:
        ctx: Run context holding the config, executor and credentials
        clients: Control-plane clients
        remove_pf9: Also delete the local configuration and state directories
        settle_delay: Seconds to wait before returning (default: config.settle_delay)

    Returns:
        DecommissionOutcome: What was done to the host

    Raises:
        ExecutorError: If the host IP cannot be discovered
        ClusterOperationError: If detach or deauthorize fails
    """
    ip = discover_host_ip(ctx)
    logger.debug(f"Host IP is {ip}")

    descriptor = detect(ctx.executor)
    if not descriptor.is_known:
        console.print("Unsupported host OS, no action taken")
        return DecommissionOutcome.UNSUPPORTED_PLATFORM
    platform = platform_for(descriptor, ctx.executor)

    if not platform.agent_installed():
        console.print("Host is not connected to Platform9 Management Plane")
        return DecommissionOutcome.NOT_INSTALLED

    host_ids = clients.resmgr.get_host_ids(ctx.auth.token, [ip])
    if host_ids:
        host_id = host_ids[0]
        try:
            node = clients.qbert.get_node_info(ctx.auth.token, ctx.auth.project_id, host_id)
        except NodeCtlError as e:
            logger.debug(f"Unable to fetch node info for {host_id}, treating it as standalone: {e}")
            node = NodeInfo()
        if node.in_cluster:
            _detach(clients, ctx, node, host_id)
            outcome = DecommissionOutcome.DETACHED
        else:
            console.print("Node is not connected to any cluster")
            outcome = DecommissionOutcome.DEAUTHORIZED
        _deauthorize(clients, ctx, host_id)
    else:
        # Hostagent is installed but the host never registered, or was already removed
        logger.debug(f"No host registered with IP {ip}, removing hostagent locally")
        outcome = DecommissionOutcome.REMOVED_LOCALLY

    remove_hostagent(platform)
    if remove_pf9:
        remove_pf9_installation(platform)

    delay = ctx.config.settle_delay if settle_delay is None else settle_delay
    console.print("Node decommissioning started....This may take a few minutes....Check the latest status in UI")
    time.sleep(delay)
    return outcome
