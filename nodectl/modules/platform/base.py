"""Capability interface shared by the per-OS-family command providers."""
import logging
import re
from abc import ABC, abstractmethod
from typing import Iterable

from ..errors import CommandError, DetectionError
from ..executor import Executor
from ..models import HostFamily

logger = logging.getLogger("nodectl.platform")

# Packages whose presence means the node was already prepared
PF9_PACKAGES = ['pf9-hostagent', 'pf9-comms', 'pf9-kube', 'pf9-muster']

HOSTAGENT_PACKAGE = 'pf9-hostagent'

OS_RELEASE_FILE = '/etc/os-release'


class Platform(ABC):
    """Commands that differ between OS families."""

    family: HostFamily = HostFamily.UNKNOWN

    def __init__(self, executor: Executor):
        self.executor = executor

    def _shell(self, command: str) -> str:
        return self.executor.run_with_stdout('bash', '-c', command)

    def _version_id(self) -> str:
        output = self._shell(f"cat {OS_RELEASE_FILE} | grep -i '^VERSION_ID'")
        match = re.search(r'VERSION_ID\s*=\s*"?([^"\n]+)"?', output, re.IGNORECASE)
        if not match:
            raise DetectionError(f"Unable to read VERSION_ID from {OS_RELEASE_FILE}")
        return match.group(1).strip()

    @abstractmethod
    def version(self) -> str:
        """Return the OS version, or raise DetectionError if it is unsupported."""

    @abstractmethod
    def package_query(self, package: str) -> str:
        """Shell command listing installed packages that match `package`."""

    @abstractmethod
    def agent_query(self) -> str:
        """Shell command that succeeds only if the hostagent package is installed."""

    @abstractmethod
    def remove_command(self) -> str:
        """Shell command that purges the hostagent package."""

    def dpkg_lock_held(self) -> bool:
        return False

    def packages_present(self, packages: Iterable[str] = PF9_PACKAGES) -> bool:
        """Return True if any of the packages is installed."""
        for package in packages:
            try:
                out = self._shell(self.package_query(package))
            except CommandError as e:
                logger.debug(f"Package query for {package} failed: {e}")
                continue
            if out.strip():
                logger.debug(f"Found installed package matching {package}")
                return True
        return False

    def agent_installed(self) -> bool:
        """Return True if the hostagent package is installed."""
        try:
            out = self._shell(self.agent_query())
        except CommandError:
            return False
        return bool(out.strip())

    def remove_agent_package(self) -> bool:
        """Purge the hostagent package. Returns False if the package manager failed."""
        try:
            self._shell(self.remove_command())
        except CommandError as e:
            logger.debug(f"Could not execute command {e}")
            return False
        return True

    def stop_service(self, name: str) -> bool:
        try:
            self._shell(f"systemctl stop {name}")
        except CommandError as e:
            logger.debug(f"Could not stop {name}: {e}")
            return False
        return True

    def remove_path(self, path: str) -> None:
        self.executor.run_command_wait(f"rm -rf {path}")

