"""
Data models for node lifecycle operations.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import DownloadError

# Response status codes of the installer discovery request
HOST_AGENT_CERTLESS = 200
HOST_AGENT_LEGACY = 404


class HostFamily(str, Enum):
    """OS families a node can belong to."""
    DEBIAN = 'debian'
    REDHAT = 'redhat'
    UNKNOWN = 'unknown'


class NodeRole(str, Enum):
    """Roles a node can take in a cluster."""
    MASTER = 'master'
    WORKER = 'worker'


class InstallerVariant(str, Enum):
    """Hostagent installer flavours offered by a region."""
    CERTLESS = 'certless'
    LEGACY = 'legacy'

    @classmethod
    def from_status(cls, status_code: int) -> 'InstallerVariant':
        """Classify a discovery request response.

        Args:
            status_code: HTTP status of the discovery request

        Returns:
            InstallerVariant: CERTLESS for 200, LEGACY for 404

        Raises:
            DownloadError: For any other status code
        """
        if status_code == HOST_AGENT_CERTLESS:
            return cls.CERTLESS
        if status_code == HOST_AGENT_LEGACY:
            return cls.LEGACY
        raise DownloadError(
            f"Invalid status code when identifying hostagent type: {status_code}"
        )


class DecommissionOutcome(str, Enum):
    """How a decommission run ended."""
    NOT_INSTALLED = 'not_installed'
    UNSUPPORTED_PLATFORM = 'unsupported_platform'
    REMOVED_LOCALLY = 'removed_locally'
    DEAUTHORIZED = 'deauthorized'
    DETACHED = 'detached'


@dataclass(frozen=True)
class PlatformDescriptor:
    """OS family and version of the target host."""
    family: HostFamily
    version: str = ''

    @property
    def is_known(self) -> bool:
        return self.family != HostFamily.UNKNOWN


@dataclass(frozen=True)
class KeystoneAuth:
    """Credentials returned by the authentication service."""
    token: str
    project_id: str
    user_id: str = ''


@dataclass(frozen=True)
class ExecutionTarget:
    """Where shell commands for a run are executed."""
    host: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None
    ssh_key: Optional[str] = None
    ssh_passphrase: Optional[str] = None
    port: int = 22
    proxy_url: Optional[str] = None

    @property
    def is_remote(self) -> bool:
        return bool(self.host)


@dataclass
class NodeInfo:
    """A node as reported by the cluster manager."""
    uuid: str = ''
    name: str = ''
    primary_ip: str = ''
    cluster_name: str = ''
    cluster_uuid: str = ''

    @property
    def in_cluster(self) -> bool:
        return bool(self.cluster_name)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'NodeInfo':
        return cls(
            uuid=data.get('uuid') or '',
            name=data.get('name') or '',
            primary_ip=data.get('primaryIp') or '',
            cluster_name=data.get('clusterName') or '',
            cluster_uuid=data.get('clusterUuid') or '',
        )


@dataclass
class RunContext:
    """State shared by every step of a single run.

    The installer variant is set once, after the discovery request, and is
    read-only from then on.
    """
    config: Any
    executor: Any
    auth: KeystoneAuth
    remote: bool = False
    installer_variant: Optional[InstallerVariant] = None

    def set_installer_variant(self, variant: InstallerVariant) -> None:
        if self.installer_variant is not None:
            raise RuntimeError("Installer variant already resolved for this run")
        self.installer_variant = variant


@dataclass
class AttachResult:
    """Outcome of attaching nodes to a cluster."""
    cluster_uuid: str
    worker_ids: List[str] = field(default_factory=list)
    master_ids: List[str] = field(default_factory=list)
    attached: Dict[NodeRole, bool] = field(default_factory=dict)
    errors: Dict[NodeRole, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return all(self.attached.values())
