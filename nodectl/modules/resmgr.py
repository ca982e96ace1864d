"""
Resource manager client: host lookup and authorization.
"""
import logging
from typing import Any, Dict, List

from .rest import RestClient

logger = logging.getLogger("nodectl.resmgr")

KUBE_ROLE = 'pf9-kube'


def _host_ips(host: Dict[str, Any]) -> List[str]:
    ip_ext = (host.get('extensions') or {}).get('ip_address') or {}
    return ip_ext.get('data') or []


class ResmgrClient(RestClient):

    def list_hosts(self, token: str) -> List[Dict[str, Any]]:
        return self._request('GET', '/resmgr/v1/hosts', token=token).json()

    def get_host_ids(self, token: str, ips: List[str]) -> List[str]:
        """Return the IDs of responding hosts that report one of the given IPs.

        IPs without a matching host are skipped; callers compare lengths to
        detect misses.
        """
        hosts = [h for h in self.list_hosts(token) if (h.get('info') or {}).get('responding')]
        host_ids = []
        for ip in ips:
            for host in hosts:
                if ip in _host_ips(host):
                    host_ids.append(host['id'])
                    break
            else:
                logger.debug(f"No responding host found with IP {ip}")
        return host_ids

    def get_host_id(self, token: str, ip: str) -> str:
        """Return the host ID for a single IP, or an empty string."""
        ids = self.get_host_ids(token, [ip])
        return ids[0] if ids else ''

    def authorize_host(self, host_id: str, token: str) -> None:
        logger.debug(f"Authorizing host {host_id}")
        self._request('PUT', f"/resmgr/v1/hosts/{host_id}/roles/{KUBE_ROLE}", token=token)

    def deauthorize_host(self, host_id: str, token: str) -> None:
        logger.debug(f"Deauthorizing host {host_id}")
        self._request('DELETE', f"/resmgr/v1/hosts/{host_id}/roles/{KUBE_ROLE}", token=token)
