"""CentOS, RHEL and Rocky command provider."""
from ..errors import DetectionError
from ..models import HostFamily
from .base import HOSTAGENT_PACKAGE, Platform

SUPPORTED_MAJOR_VERSIONS = ('7', '8', '9')


class RedHat(Platform):
    family = HostFamily.REDHAT

    def version(self) -> str:
        version = self._version_id()
        if version.split('.')[0] not in SUPPORTED_MAJOR_VERSIONS:
            raise DetectionError(f"Unsupported CentOS/RHEL version: {version}")
        return version

    def package_query(self, package: str) -> str:
        return f"yum list installed | {{ grep -i '{package}' || true; }}"

    def agent_query(self) -> str:
        return f"yum list installed {HOSTAGENT_PACKAGE}"

    def remove_command(self) -> str:
        return f"yum remove {HOSTAGENT_PACKAGE} -y"
