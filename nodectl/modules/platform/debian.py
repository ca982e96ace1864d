"""Debian and Ubuntu command provider."""
import logging
from contextlib import contextmanager

from ..errors import DetectionError
from ..models import HostFamily
from .base import HOSTAGENT_PACKAGE, Platform

logger = logging.getLogger("nodectl.platform.debian")

SUPPORTED_VERSIONS = ('18.04', '20.04', '22.04', '24.04', '10', '11', '12')

DPKG_LOCK_FILES = ('/var/lib/dpkg/lock-frontend', '/var/lib/dpkg/lock')

UNATTENDED_UPGRADES = 'unattended-upgrades'


class Debian(Platform):
    family = HostFamily.DEBIAN

    def version(self) -> str:
        version = self._version_id()
        if version not in SUPPORTED_VERSIONS:
            raise DetectionError(f"Unsupported Debian/Ubuntu version: {version}")
        return version

    def package_query(self, package: str) -> str:
        return f"dpkg -l | {{ grep -i '{package}' || true; }}"

    def agent_query(self) -> str:
        return f"dpkg -s {HOSTAGENT_PACKAGE}"

    def remove_command(self) -> str:
        return f"apt-get purge {HOSTAGENT_PACKAGE} -y"

    def dpkg_lock_held(self) -> bool:
        """Return True if another process holds the dpkg lock.

        lsof exits non-zero when no process has the files open.
        """
        exit_code, out, _ = self.executor.execute(
            'bash', '-c', f"lsof {' '.join(DPKG_LOCK_FILES)}"
        )
        held = exit_code == 0 and bool(out.strip())
        logger.debug(f"dpkg lock held: {held}")
        return held

    def _systemctl(self, action: str) -> str:
        exit_code, out, err = self.executor.execute(
            'bash', '-c', f"systemctl {action} {UNATTENDED_UPGRADES}"
        )
        if exit_code != 0:
            logger.debug(f"Failed to {action} {UNATTENDED_UPGRADES}: {err.strip()}")
        return out.strip()

    def unattended_upgrades_active(self) -> bool:
        logger.debug("Checking status of unattended-upgrades")
        output = self._systemctl('is-active')
        return bool(output) and 'inactive' not in output and 'unknown' not in output

    def unattended_upgrades_enabled(self) -> bool:
        logger.debug("Checking if unattended-upgrades is enabled")
        return self._systemctl('is-enabled') == 'enabled'

    def stop_unattended_upgrades(self):
        logger.debug("Stopping unattended-upgrades")
        self._systemctl('stop')

    def start_unattended_upgrades(self):
        logger.debug("Starting unattended-upgrades")
        self._systemctl('start')

    def disable_unattended_upgrades(self):
        logger.debug("Disabling unattended-upgrades")
        self._systemctl('disable')

    def enable_unattended_upgrades(self):
        logger.debug("Enabling unattended-upgrades")
        self._systemctl('enable')

    @contextmanager
    def paused_unattended_upgrades(self):
        """Stop (and disable) unattended upgrades for the duration of the block.

        Whatever was changed is put back on exit, including when the block raises.
        """
        stopped = disabled = False
        try:
            if self.unattended_upgrades_active():
                self.stop_unattended_upgrades()
                stopped = True
                if self.unattended_upgrades_enabled():
                    self.disable_unattended_upgrades()
                    disabled = True
            yield
        finally:
            if disabled:
                self.enable_unattended_upgrades()
            if stopped:
                self.start_unattended_upgrades()
