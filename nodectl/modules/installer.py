"""Hostagent installer discovery, download and execution.

Regions serve one of two installer flavours. A region that publishes the
certless installer under /clarity/ answers the discovery request with 200, an
older region answers 404 and the legacy installer is fetched from /private/
with the user's token.
"""
import logging
import shlex
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

import requests

from .errors import CommandError, DownloadError, ExecutorError, InstallerExecutionError, RegistrationError
from .executor import Executor
from .models import InstallerVariant, PlatformDescriptor, RunContext

logger = logging.getLogger("nodectl.installer")

WORK_DIR_NAME = 'pf9'
INSTALLER_SCRIPT = 'installer.sh'
LEGACY_INSTALL_LOG = 'agent_install'
HOST_ID_FILE = '/etc/pf9/host_id.conf'

CERTLESS_URL = "https://{region}/clarity/platform9-install-{family}.sh"
LEGACY_URL = "https://{region}/private/platform9-install-{family}.sh"

INSTALLER_ERRORS: Dict[int, str] = {
    1: "Generic failure while installing the hostagent",
    2: "Unable to connect to the controller, check network connectivity and proxy settings",
    3: "Hostagent packages are already installed on this host",
    4: "Unsupported operating system",
    5: "Unsupported proxy configuration, only http(s)://host:port proxies are supported",
    6: "Permission denied, the installer must run with sudo privileges",
    7: "Failed to download hostagent packages",
    8: "Invalid credentials supplied to the installer",
}

UNKNOWN_INSTALLER_ERROR = "Unknown installer error"


def translate_exit_code(exit_code: Optional[int]) -> str:
    """Return a human readable cause for an installer exit code."""
    return INSTALLER_ERRORS.get(exit_code, UNKNOWN_INSTALLER_ERROR)


def resolve_installer_variant(region_fqdn: str, descriptor: PlatformDescriptor,
                              session: Optional[requests.Session] = None,
                              verify: bool = True, timeout: int = 30) -> InstallerVariant:
    """Ask the region whether it serves the certless installer.

    Args:
        region_fqdn: Host name serving the region
        descriptor: Platform of the target host, selects the installer file
        session: HTTP session (optional)
        verify: Verify TLS certificates
        timeout: Request timeout in seconds

    Returns:
        InstallerVariant: CERTLESS on 200, LEGACY on 404

    Raises:
        DownloadError: On a network failure or any other status code
    """
    url = CERTLESS_URL.format(region=region_fqdn, family=descriptor.family.value)
    logger.debug(f"Identifying hostagent type from {url}")
    http = session or requests
    try:
        response = http.get(url, verify=verify, timeout=timeout)
    except requests.RequestException as e:
        raise DownloadError(f"Unable to send a request to {url}: {e}") from e
    variant = InstallerVariant.from_status(response.status_code)
    logger.debug(f"Hostagent installer type is {variant.value}")
    return variant


def parse_host_id(content: str) -> str:
    """Extract the host ID from the key=value file written by the installer."""
    for line in content.splitlines():
        key, sep, value = line.partition('=')
        if sep and key.strip() == 'host_id':
            return value.strip().strip('"')
    return ''


def read_host_id(executor: Executor) -> str:
    """Read the host ID registered by the installer.

    Raises:
        RegistrationError: If the file is unreadable or holds no host ID
    """
    logger.debug("Identifying the hostID from conf")
    try:
        content = executor.run_with_stdout('cat', HOST_ID_FILE)
    except ExecutorError as e:
        raise RegistrationError(f"Unable to fetch host ID. {e}") from e
    host_id = parse_host_id(content)
    if not host_id:
        raise RegistrationError(f"Unable to fetch host ID. {HOST_ID_FILE} holds no host_id")
    return host_id


class HostAgentInstaller:
    """Downloads and runs the hostagent installer on the target host."""

    def __init__(self, ctx: RunContext):
        self.ctx = ctx
        self.executor = ctx.executor
        self.config = ctx.config

    def _shell(self, command: str) -> str:
        return self.executor.run_with_stdout('bash', '-c', command)

    def _home_dir(self) -> str:
        try:
            home = self._shell('echo $HOME')
        except CommandError as e:
            raise DownloadError(f"Unable to resolve home directory: {e}") from e
        home = home.strip().strip('"').strip()
        if not home:
            raise DownloadError("Unable to resolve home directory")
        return home

    @contextmanager
    def workdir(self) -> Iterator[str]:
        """Create the per-user download directory and clean up installer artifacts on exit."""
        home = self._home_dir()
        work_dir = f"{home}/{WORK_DIR_NAME}"
        # A fresh remote VM will not have this directory yet
        exit_code, _, err = self.executor.execute('mkdir', '-p', work_dir)
        if exit_code != 0:
            logger.debug(f"Unable to create {work_dir}: {err.strip()}")
        try:
            yield work_dir
        finally:
            self.cleanup(work_dir)

    def cleanup(self, work_dir: str) -> None:
        logger.debug("Removing temporary directory created to extract installer")
        for pattern in ('pf9-install-*', INSTALLER_SCRIPT, LEGACY_INSTALL_LOG):
            exit_code, _, err = self.executor.execute('bash', '-c', f"rm -rf {work_dir}/{pattern}")
            if exit_code != 0:
                logger.debug(f"error removing {work_dir}/{pattern}: {err.strip()}")

    def download_command(self, region_fqdn: str, descriptor: PlatformDescriptor,
                         variant: InstallerVariant, work_dir: str) -> str:
        target = f"{work_dir}/{INSTALLER_SCRIPT}"
        family = descriptor.family.value
        if variant == InstallerVariant.CERTLESS:
            url = CERTLESS_URL.format(region=region_fqdn, family=family)
            insecure = "-k " if self.config.allow_insecure else ""
            return f"curl {insecure}--silent --show-error {url} -o {target}"
        url = LEGACY_URL.format(region=region_fqdn, family=family)
        # The legacy endpoint is always fetched insecurely
        header = shlex.quote(f"X-Auth-Token:{self.ctx.auth.token}")
        return f"curl --insecure --silent --show-error -H {header} {url} -o {target}"

    def install_options(self, region_fqdn: str, variant: InstallerVariant, work_dir: str) -> str:
        if variant == InstallerVariant.LEGACY:
            return (f"--insecure --project-name={shlex.quote(self.ctx.auth.project_id)} "
                    f"2>&1 | tee -a {work_dir}/{LEGACY_INSTALL_LOG}")
        if self.config.mfa_token:
            return (f"--no-project --controller={region_fqdn} "
                    f"--user-token={shlex.quote(self.ctx.auth.token)}")
        return (f"--no-project --controller={region_fqdn} "
                f"--username={shlex.quote(self.config.username)} "
                f"--password={shlex.quote(self.config.password)}")

    def installer_command(self, work_dir: str) -> str:
        script = f"{work_dir}/{INSTALLER_SCRIPT}"
        if self.config.proxy_url:
            return f"{script} --proxy {shlex.quote(self.config.proxy_url)} --skip-os-check --no-ntp"
        return f"{script} --no-proxy --skip-os-check --no-ntp"

    def run_installer(self, command: str, options: str) -> None:
        if self.ctx.remote:
            self.executor.run_with_stdout(f"bash {command} {options}")
        else:
            self.executor.run_with_stdout('bash', '-c', f"{command} {options}")

    def install(self, region_fqdn: str, descriptor: PlatformDescriptor, variant: InstallerVariant) -> None:
        """Download and run the installer.

        Raises:
            DownloadError: If the installer cannot be downloaded
            InstallerExecutionError: If the installer exits with a non-zero status
        """
        logger.debug(f"Downloading the {variant.value} hostagent installer")
        with self.workdir() as work_dir:
            try:
                self._shell(self.download_command(region_fqdn, descriptor, variant, work_dir))
                self._shell(f"chmod +x {work_dir}/{INSTALLER_SCRIPT}")
            except CommandError as e:
                raise DownloadError(f"Unable to download the hostagent installer: {e}") from e
            logger.debug("Hostagent download completed successfully")

            command = self.installer_command(work_dir)
            options = self.install_options(region_fqdn, variant, work_dir)
            try:
                self.run_installer(command, options)
            except CommandError as e:
                message = translate_exit_code(e.exit_code)
                logger.debug(f"Installer exited with {e.exit_code}: {message}")
                raise InstallerExecutionError(e.exit_code, message) from e
        logger.debug("Hostagent installed successfully")
