import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

import typer

from nodectl.config import NodeConfig, load_config
from nodectl.modules.attach import attach_nodes
from nodectl.modules.client import Client
from nodectl.modules.decommission import decommission_node
from nodectl.modules.errors import ExecutorError, NodeCtlError
from nodectl.modules.executor import get_executor
from nodectl.modules.models import ExecutionTarget, NodeRole, RunContext
from nodectl.modules.prep import prep_node
from nodectl.utils import error, success, warning

logger = logging.getLogger("nodectl.commands.node")

app = typer.Typer(help="Prepare, attach and decommission nodes")

IP_OPTION = typer.Option(None, "--ip", "-i", help="IP of a remote node, the local machine is used when omitted")
USER_OPTION = typer.Option(None, "--user", "-u", help="SSH user of the remote node")
PASSWORD_OPTION = typer.Option(None, "--password", "-p", help="SSH password of the remote node")
SSH_KEY_OPTION = typer.Option(None, "--ssh-key", "-s", help="SSH private key of the remote node")
SSH_PASSPHRASE_OPTION = typer.Option(None, "--ssh-passphrase", help="Passphrase of an encrypted SSH private key")
PORT_OPTION = typer.Option(22, "--port", help="SSH port of the remote node")
MFA_OPTION = typer.Option(None, "--mfa", help="MFA token")
CONFIG_OPTION = typer.Option(None, "--config", "-c", help="Config file (default: ~/.nodectl/config.yaml)")


def _split(values: Optional[List[str]]) -> List[str]:
    """Accept both repeated options and comma separated values."""
    ips = []
    for value in values or []:
        ips.extend(v.strip() for v in value.split(',') if v.strip())
    return ips


@contextmanager
def run_context(config_path: Optional[Path], node: NodeConfig, **overrides) -> Iterator[Tuple[RunContext, Client]]:
    """Load config, connect to the target and authenticate.

    Fatal errors are printed and turned into a non-zero exit.
    """
    clients = None
    try:
        config = load_config(config_path, **overrides)
        config.validate_required()
        node.validate_remote()
        success("Loaded Config Successfully")

        target = ExecutionTarget(
            host=node.host or None,
            user=node.user or None,
            password=node.password or None,
            ssh_key=node.ssh_key or None,
            ssh_passphrase=node.ssh_passphrase or None,
            port=node.port,
            proxy_url=config.proxy_url or None,
        )
        executor = get_executor(target)
        if target.is_remote and not executor.check_sudo():
            executor.close()
            raise ExecutorError(f"User {node.user} cannot run sudo on {node.host}")
        clients = Client.build(config, executor)
        auth = clients.keystone.get_auth(config.username, config.password, config.tenant, config.mfa_token)
        yield RunContext(config=config, executor=executor, auth=auth, remote=target.is_remote), clients
    except NodeCtlError as e:
        logger.debug("Run failed", exc_info=True)
        error(str(e))
        raise typer.Exit(code=1)
    finally:
        if clients is not None:
            clients.close()


@app.command("prep")
def prep_cmd(
    ip: Optional[str] = IP_OPTION,
    user: Optional[str] = USER_OPTION,
    password: Optional[str] = PASSWORD_OPTION,
    ssh_key: Optional[str] = SSH_KEY_OPTION,
    ssh_passphrase: Optional[str] = SSH_PASSPHRASE_OPTION,
    port: int = PORT_OPTION,
    mfa: Optional[str] = MFA_OPTION,
    skip_kube: bool = typer.Option(False, "--skip-kube", help="Install the hostagent without authorizing the host"),
    config_path: Optional[Path] = CONFIG_OPTION,
):
    """
    Install the hostagent on a node and authorize it on the control plane.
    """
    node = NodeConfig(host=ip or "", user=user or "", password=password or "", ssh_key=ssh_key or "",
                      ssh_passphrase=ssh_passphrase or "", port=port)
    with run_context(config_path, node, mfa_token=mfa, skip_kube=skip_kube or None) as (ctx, clients):
        host_id = prep_node(ctx, clients)
        logger.debug(f"Prepared host {host_id}")


@app.command("decommission")
def decommission_cmd(
    ip: Optional[str] = IP_OPTION,
    user: Optional[str] = USER_OPTION,
    password: Optional[str] = PASSWORD_OPTION,
    ssh_key: Optional[str] = SSH_KEY_OPTION,
    ssh_passphrase: Optional[str] = SSH_PASSPHRASE_OPTION,
    port: int = PORT_OPTION,
    mfa: Optional[str] = MFA_OPTION,
    remove_pf9: bool = typer.Option(False, "--remove-pf9", "-r", help="Also remove the local pf9 configuration and state directories"),
    config_path: Optional[Path] = CONFIG_OPTION,
):
    """
    Detach a node from its cluster, deauthorize it and remove the hostagent.
    """
    node = NodeConfig(host=ip or "", user=user or "", password=password or "", ssh_key=ssh_key or "",
                      ssh_passphrase=ssh_passphrase or "", port=port)
    with run_context(config_path, node, mfa_token=mfa) as (ctx, clients):
        outcome = decommission_node(ctx, clients, remove_pf9=remove_pf9)
        logger.debug(f"Decommission finished: {outcome.value}")


@app.command("attach")
def attach_cmd(
    cluster_name: str = typer.Argument(..., help="Name of the cluster to attach to"),
    master_ip: Optional[List[str]] = typer.Option(None, "--master-ip", "-m", help="Master node IP, repeat or comma separate"),
    worker_ip: Optional[List[str]] = typer.Option(None, "--worker-ip", "-w", help="Worker node IP, repeat or comma separate"),
    mfa: Optional[str] = MFA_OPTION,
    config_path: Optional[Path] = CONFIG_OPTION,
):
    """
    Attach prepared nodes to an existing cluster. Multiple workers but only one master can be attached at a time.
    """
    masters = _split(master_ip)
    workers = _split(worker_ip)
    if not masters and not workers:
        error("No nodes were specified to be attached to the cluster")
        raise typer.Exit(code=1)

    with run_context(config_path, NodeConfig(), mfa_token=mfa) as (ctx, clients):
        result = attach_nodes(ctx, clients, cluster_name, masters, workers)
        for role in (NodeRole.WORKER, NodeRole.MASTER):
            if role not in result.attached:
                continue
            if result.attached[role]:
                success(f"{role.value.capitalize()} node(s) attached to cluster {cluster_name}")
            else:
                warning(f"Failed to attach {role.value} node(s): {result.errors[role]}")
        if not result.ok:
            raise typer.Exit(code=1)
