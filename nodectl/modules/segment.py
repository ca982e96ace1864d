"""
Best-effort usage telemetry sent to Segment.
"""
import logging
import platform
from typing import Optional

import requests

from .models import KeystoneAuth

logger = logging.getLogger("nodectl.segment")

SEGMENT_TRACK_URL = 'https://api.segment.io/v1/track'


class SegmentClient:
    """Sends events to Segment. Never raises."""

    def __init__(self, write_key: Optional[str], fqdn: str = '', session: Optional[requests.Session] = None,
                 timeout: int = 5):
        self.write_key = write_key
        self.fqdn = fqdn
        self.session = session or requests.Session()
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.write_key)

    def send_event(self, name: str, auth: Optional[KeystoneAuth], status: str = '', error: str = '') -> bool:
        """Send an event, returning False if it could not be delivered."""
        if not self.enabled:
            return False
        payload = {
            'event': name,
            'userId': auth.user_id if auth and auth.user_id else 'anonymous',
            'properties': {
                'du_fqdn': self.fqdn,
                'keystone_project': auth.project_id if auth else '',
                'status': status,
                'errorMsg': error,
                'os': platform.system(),
            },
        }
        try:
            response = self.session.post(
                SEGMENT_TRACK_URL, json=payload, auth=(self.write_key, ''), timeout=self.timeout
            )
            if response.status_code != 200:
                logger.debug(f"Segment event {name} rejected: {response.status_code} {response.text}")
                return False
        except requests.RequestException as e:
            logger.debug(f"Unable to send Segment event {name}. Error: {str(e)}")
            return False
        return True

    def close(self) -> None:
        self.session.close()
