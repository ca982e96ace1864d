"""
Node preparation: install the hostagent, register the host and authorize it
on the control plane.
"""
import logging
import time
from contextlib import nullcontext

from nodectl.utils import spinner, success

from .client import Client
from .errors import AuthorizationError, DetectionError, NodeCtlError, PreconditionError
from .installer import HostAgentInstaller, read_host_id, resolve_installer_variant
from .models import InstallerVariant, RunContext
from .platform import PF9_PACKAGES, Debian, detect, platform_for

logger = logging.getLogger("nodectl.prep")

ALREADY_PRESENT_MESSAGE = (
    "Platform9 packages already present on the host.\n"
    "Please uninstall these packages if you want to prep the node again.\n"
    "Instructions to uninstall these are at:\n"
    "https://docs.platform9.com/kubernetes/pmk-cli-unistall-hostagent"
)


def send_prep_event(clients: Client, ctx: RunContext, event: str, is_error: bool = False) -> None:
    """Report a prep-node step to telemetry. Failures are only logged."""
    if is_error:
        name, status, error = "Prep-node : ERROR", "FAIL", event
    else:
        name, status, error = f"Prep-node : {event}", "PASS", ""
    if not clients.segment.send_event(name, ctx.auth, status, error):
        logger.debug(f"Unable to send Segment event for Node prep: {name}")


def prep_node(ctx: RunContext, clients: Client) -> str:
    """Prepare the target host and attach it to the control plane.

    Args:
        ctx: Run context holding the config, executor and credentials
        clients: Control-plane clients

    Returns:
        str: The host ID registered by the hostagent

    Raises:
        NodeCtlError: On the first fatal step; nothing is retried
    """
    logger.debug("Received a call to start preparing node(s).")
    try:
        with spinner("Starting prep-node") as progress:
            return _prep_node(ctx, clients, progress)
    except NodeCtlError as e:
        send_prep_event(clients, ctx, f"Error: {e}", is_error=True)
        raise


def _prep_node(ctx: RunContext, clients: Client, progress) -> str:
    send_prep_event(clients, ctx, "Starting prep-node")

    descriptor = detect(ctx.executor)
    if not descriptor.is_known:
        raise DetectionError("Invalid host OS, supported OS families are debian and redhat")
    platform = platform_for(descriptor, ctx.executor)
    logger.debug(f"Host platform is {descriptor.family.value} {descriptor.version}")

    if isinstance(platform, Debian):
        if platform.dpkg_lock_held():
            logger.error("Dpkg lock is acquired by another process while prep-node was running")
            raise PreconditionError("Dpkg is under lock")
        paused = platform.paused_unattended_upgrades()
    else:
        paused = nullcontext()

    with paused:
        if platform.packages_present(PF9_PACKAGES):
            raise PreconditionError(ALREADY_PRESENT_MESSAGE)

        send_prep_event(clients, ctx, "Installing hostagent - 2")
        progress.update("Downloading the Hostagent (this might take a few minutes...)")
        region_fqdn = clients.keystone.fetch_region_fqdn(ctx.config.region, ctx.auth)
        variant = resolve_installer_variant(
            region_fqdn, descriptor,
            session=clients.keystone.session,
            verify=not ctx.config.allow_insecure,
            timeout=ctx.config.api_timeout,
        )
        ctx.set_installer_variant(variant)
        HostAgentInstaller(ctx).install(region_fqdn, descriptor, variant)

    progress.stop()
    if ctx.installer_variant == InstallerVariant.CERTLESS:
        success("Platform9 packages installed successfully")
    else:
        success("Hostagent installed successfully")
    progress.start()

    send_prep_event(clients, ctx, "Initialising host - 3")
    progress.update("Initialising host")
    logger.debug("Initialising host")
    host_id = read_host_id(ctx.executor)
    progress.stop()
    success("Initialised host successfully")

    if ctx.config.skip_kube:
        logger.debug("Skip authorizing host as --skip-kube flag is true")
        send_prep_event(clients, ctx, "Successful")
        return host_id

    progress.start()
    progress.update("Authorising host")
    logger.debug(f"Waiting {ctx.config.wait_period}s before authorising host {host_id}")
    time.sleep(ctx.config.wait_period)
    try:
        clients.resmgr.authorize_host(host_id, ctx.auth.token)
    except NodeCtlError as e:
        raise AuthorizationError(f"Unable to authorise host. {e}") from e

    logger.debug("Host successfully attached to the Platform9 control-plane")
    send_prep_event(clients, ctx, "Successful")
    progress.stop()
    success("Host successfully attached to the Platform9 control-plane")
    return host_id
