"""
Cluster manager client.
"""
import logging
from typing import List, Optional, Tuple

import requests

from .errors import APIError
from .models import NodeInfo, NodeRole
from .resmgr import ResmgrClient
from .rest import RestClient

logger = logging.getLogger("nodectl.qbert")

CLUSTER_READY_STATUS = 'ok'


class QbertClient(RestClient):

    def __init__(self, fqdn: str, session: Optional[requests.Session] = None, timeout: int = 30,
                 resmgr: Optional[ResmgrClient] = None):
        super().__init__(fqdn, session=session, timeout=timeout)
        self.resmgr = resmgr or ResmgrClient(fqdn, session=self.session, timeout=timeout)

    def _base(self, project_id: str) -> str:
        return f"/qbert/v3/{project_id}"

    def check_cluster_exists(self, name: str, project_id: str, token: str) -> Tuple[bool, str]:
        """Return (exists, cluster_uuid) for a cluster name."""
        clusters = self._request('GET', f"{self._base(project_id)}/clusters", token=token).json()
        for cluster in clusters:
            if cluster.get('name') == name:
                return True, cluster.get('uuid', '')
        return False, ''

    def get_cluster_status(self, project_id: str, token: str, cluster_uuid: str) -> str:
        data = self._request('GET', f"{self._base(project_id)}/clusters/{cluster_uuid}", token=token).json()
        status = str(data.get('status') or '').strip().strip('"')
        logger.debug(f"Cluster status is : {status}")
        return status

    def get_node_info(self, token: str, project_id: str, host_id: str) -> NodeInfo:
        """Return the node record, or an empty NodeInfo if the cluster manager has none."""
        try:
            data = self._request('GET', f"{self._base(project_id)}/nodes/{host_id}", token=token).json()
        except APIError as e:
            if e.status_code != 404:
                raise
            logger.debug(f"No node record for host {host_id}")
            return NodeInfo()
        return NodeInfo.from_api(data or {})

    def detach_node(self, cluster_uuid: str, project_id: str, token: str, host_id: str) -> None:
        logger.debug(f"Detaching {host_id} from cluster {cluster_uuid}")
        self._request(
            'POST', f"{self._base(project_id)}/clusters/{cluster_uuid}/detach",
            token=token, json=[{'uuid': host_id}]
        )

    def deauthorize_node(self, host_id: str, token: str) -> None:
        self.resmgr.deauthorize_host(host_id, token)

    def attach_node(self, cluster_uuid: str, project_id: str, token: str,
                    host_ids: List[str], role: NodeRole) -> None:
        logger.debug(f"Attaching {role.value} node(s) {host_ids} to cluster {cluster_uuid}")
        body = [{'uuid': host_id, 'isMaster': role == NodeRole.MASTER} for host_id in host_ids]
        self._request('POST', f"{self._base(project_id)}/clusters/{cluster_uuid}/attach", token=token, json=body)
