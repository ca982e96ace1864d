"""
Attach prepared hosts to an existing cluster as workers or masters.
"""
import logging
from typing import List

from .client import Client
from .errors import ClusterOperationError, NodeCtlError, ResolutionError
from .models import AttachResult, NodeRole, RunContext
from .qbert import CLUSTER_READY_STATUS

logger = logging.getLogger("nodectl.attach")


def resolve_host_ids(clients: Client, ctx: RunContext, ips: List[str]) -> List[str]:
    """Resolve every IP to a host ID.

    Raises:
        ResolutionError: If any IP has no responding host; nothing is returned in that case
    """
    logger.debug("Getting host IDs")
    host_ids = []
    for ip in ips:
        host_id = clients.resmgr.get_host_id(ctx.auth.token, ip)
        if not host_id:
            raise ResolutionError(f"Unable to find host with IP {ip} please try again or run prep-node first")
        host_ids.append(host_id)
    return host_ids


def _send_event(clients: Client, ctx: RunContext, name: str, status: str) -> None:
    if not clients.segment.send_event(name, ctx.auth, status, ""):
        logger.debug(f"Unable to send Segment event for attach node: {name} {status}")


def _attach_role(clients: Client, ctx: RunContext, result: AttachResult,
                 host_ids: List[str], role: NodeRole) -> None:
    label = role.value.capitalize()
    try:
        clients.qbert.attach_node(result.cluster_uuid, ctx.auth.project_id, ctx.auth.token, host_ids, role)
    except NodeCtlError as e:
        logger.error(f"Encountered an error while attaching {role.value} node to a Kubernetes cluster : {e}")
        _send_event(clients, ctx, "Attaching-node", f"Failed to attach {role.value} node")
        result.attached[role] = False
        result.errors[role] = str(e)
        return
    logger.info(f"{label} node(s) {host_ids} attached to cluster")
    _send_event(clients, ctx, "Attaching-node", f"{label} node attached")
    result.attached[role] = True


def attach_nodes(ctx: RunContext, clients: Client, cluster_name: str,
                 master_ips: List[str], worker_ips: List[str]) -> AttachResult:
    """Attach hosts to a cluster.

    Workers are attached before masters. A failure in one role group is recorded
    in the result and does not stop the other.

    Args:
        ctx: Run context holding the config, executor and credentials
        clients: Control-plane clients
        cluster_name: Name of an existing, ready cluster
        master_ips: IPs of hosts to attach as masters
        worker_ips: IPs of hosts to attach as workers

    Returns:
        AttachResult: Resolved host IDs and per-role outcome

    Raises:
        ValueError: If no IPs were given
        ResolutionError: If any IP cannot be resolved
        ClusterOperationError: If the cluster is missing or not ready
    """
    if not master_ips and not worker_ips:
        raise ValueError("No nodes were specified to be attached to the cluster")

    master_ids = resolve_host_ids(clients, ctx, master_ips) if master_ips else []
    worker_ids = resolve_host_ids(clients, ctx, worker_ips) if worker_ips else []

    exists, cluster_uuid = clients.qbert.check_cluster_exists(cluster_name, ctx.auth.project_id, ctx.auth.token)
    if not exists:
        raise ClusterOperationError('attach', f"Cluster {cluster_name} does not exist")

    status = clients.qbert.get_cluster_status(ctx.auth.project_id, ctx.auth.token, cluster_uuid)
    if status != CLUSTER_READY_STATUS:
        raise ClusterOperationError('attach', f"Cluster is not ready. cluster status is {status}")

    result = AttachResult(cluster_uuid=cluster_uuid, worker_ids=worker_ids, master_ids=master_ids)
    _send_event(clients, ctx, "Starting Attach-node", "")
    if worker_ids:
        _attach_role(clients, ctx, result, worker_ids, NodeRole.WORKER)
    if master_ids:
        _attach_role(clients, ctx, result, master_ids, NodeRole.MASTER)
    return result
