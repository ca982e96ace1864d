"""Shared plumbing for the control-plane REST clients."""
import logging
from typing import Any, Optional

import requests

from .errors import APIError

logger = logging.getLogger("nodectl.rest")


def new_session(allow_insecure: bool = False) -> requests.Session:
    """Create the HTTP session shared by all clients of a run."""
    session = requests.Session()
    session.verify = not allow_insecure
    session.headers.update({'Content-Type': 'application/json'})
    return session


class RestClient:
    """Base class for clients of a control-plane service."""

    def __init__(self, fqdn: str, session: Optional[requests.Session] = None, timeout: int = 30):
        if not fqdn.startswith('http'):
            fqdn = f"https://{fqdn}"
        self.fqdn = fqdn.rstrip('/')
        self.session = session or new_session()
        self.timeout = timeout

    def _request(self, method: str, path: str, token: Optional[str] = None,
                 **kwargs: Any) -> requests.Response:
        url = f"{self.fqdn}{path}"
        headers = kwargs.pop('headers', {})
        if token:
            headers['X-Auth-Token'] = token
        logger.debug(f"{method} {url}")
        try:
            response = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise APIError(f"{method} {url} failed: {e}") from e
        if response.status_code >= 400:
            raise APIError(
                f"{method} {url} returned {response.status_code}: {response.text}",
                status_code=response.status_code
            )
        return response
