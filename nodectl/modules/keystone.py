"""
Keystone authentication client.
"""
import logging
from typing import Any, Dict
from urllib.parse import urlparse

from .errors import APIError, AuthenticationError
from .models import KeystoneAuth
from .rest import RestClient

logger = logging.getLogger("nodectl.keystone")

REGION_INFO_SERVICE = 'regionInfo'


class KeystoneClient(RestClient):
    """Obtains tokens and region endpoints from the authentication service."""

    def get_auth(self, username: str, password: str, tenant: str, mfa_token: str = '') -> KeystoneAuth:
        """Authenticate and scope the token to a project.

        Args:
            username: Account user name (e-mail)
            password: Account password
            tenant: Project the token is scoped to
            mfa_token: Optional one-time MFA passcode

        Returns:
            KeystoneAuth: Token and project ID

        Raises:
            AuthenticationError: If the credentials are rejected
        """
        methods = ['password']
        identity: Dict[str, Any] = {
            'password': {
                'user': {
                    'name': username,
                    'domain': {'id': 'default'},
                    'password': password,
                }
            }
        }
        if mfa_token:
            methods.append('totp')
            identity['totp'] = {
                'user': {
                    'name': username,
                    'domain': {'id': 'default'},
                    'passcode': mfa_token,
                }
            }
        identity['methods'] = methods
        body = {
            'auth': {
                'identity': identity,
                'scope': {
                    'project': {
                        'name': tenant,
                        'domain': {'id': 'default'},
                    }
                }
            }
        }
        try:
            response = self._request('POST', '/keystone/v3/auth/tokens?nocatalog', json=body)
        except APIError as e:
            raise AuthenticationError(f"Unable to authenticate as {username}: {e}") from e

        token = response.headers.get('X-Subject-Token', '')
        data = response.json().get('token', {})
        project_id = data.get('project', {}).get('id', '')
        if not token or not project_id:
            raise AuthenticationError("Authentication response did not contain a scoped token")
        logger.debug(f"Authenticated {username} on project {project_id}")
        return KeystoneAuth(token=token, project_id=project_id, user_id=data.get('user', {}).get('id', ''))

    def fetch_region_fqdn(self, region: str, auth: KeystoneAuth) -> str:
        """Return the host name serving the given region.

        Falls back to the controller host when the region has no dedicated endpoint.
        """
        controller = urlparse(self.fqdn).netloc
        if not region:
            return controller

        services = self._request(
            'GET', f"/keystone/v3/services?type={REGION_INFO_SERVICE}", token=auth.token
        ).json().get('services', [])
        if not services:
            logger.debug("No regionInfo service registered, using controller host")
            return controller

        endpoints = self._request(
            'GET',
            f"/keystone/v3/endpoints?service_id={services[0]['id']}&interface=public",
            token=auth.token
        ).json().get('endpoints', [])
        for endpoint in endpoints:
            if endpoint.get('region') == region or endpoint.get('region_id') == region:
                netloc = urlparse(endpoint.get('url', '')).netloc
                if netloc:
                    logger.debug(f"Region {region} is served by {netloc}")
                    return netloc
        raise APIError(f"Region {region} not found")
