"""Home Assistant REST API client.

Used for alert delivery (notify / persistent_notification services) and for
reading the Home Assistant time zone as a fallback for the battery's zone.

Usage:
    from shared.ha_api import HomeAssistantApi

    ha = HomeAssistantApi()  # Auto-detects Supervisor or uses env vars
    ha.call_service("notify", "mobile_app_pixel", {"title": "Hi", "message": "..."})
"""

import logging
import os
from typing import Dict, Optional, Tuple

import requests

logger = logging.getLogger(__name__)


def get_ha_api_config() -> Tuple[str, str]:
    """Get Home Assistant API configuration from environment.

    Supports both Supervisor-managed add-ons (SUPERVISOR_TOKEN) and
    standalone development (HA_API_TOKEN, HA_API_URL).

    Returns:
        Tuple of (base_url, token)
    """
    token = os.getenv('HA_API_TOKEN') or os.getenv('SUPERVISOR_TOKEN', '')
    base_url = os.getenv('HA_API_URL') or 'http://supervisor/core/api'
    return base_url.rstrip('/'), token


class HomeAssistantApi:
    """Thin client for the Home Assistant REST API."""

    def __init__(self, base_url: Optional[str] = None, token: Optional[str] = None, timeout: int = 10):
        if base_url is None or token is None:
            env_url, env_token = get_ha_api_config()
            self.base_url = (base_url or env_url).rstrip('/')
            self.token = token or env_token
        else:
            self.base_url = base_url.rstrip('/')
            self.token = token
        self.timeout = timeout

        self._headers = {
            'Authorization': f'Bearer {self.token}',
            'Content-Type': 'application/json'
        }

    def call_service(self, domain: str, service: str, data: Dict) -> bool:
        """Call a Home Assistant service.

        Args:
            domain: Service domain (e.g., 'notify', 'persistent_notification')
            service: Service name (e.g., 'mobile_app_pixel', 'create')
            data: Service data dictionary

        Returns:
            True if successful, False otherwise
        """
        try:
            url = f"{self.base_url}/services/{domain}/{service}"
            response = requests.post(url, json=data, headers=self._headers, timeout=self.timeout)

            if response.ok:
                logger.debug("Called %s.%s", domain, service)
                return True
            logger.error(
                "Failed to call %s.%s: %d - %s",
                domain, service, response.status_code, response.text[:200]
            )
            return False
        except requests.RequestException as e:
            logger.error("Exception calling %s.%s: %s", domain, service, e)
            return False

    def get_config(self) -> Optional[Dict]:
        """Fetch Home Assistant configuration (timezone, unit system, etc.)."""
        try:
            response = requests.get(f"{self.base_url}/config", headers=self._headers, timeout=self.timeout)
            if response.ok:
                return response.json()
            logger.debug("Failed to fetch HA config: %s - %s", response.status_code, response.text[:200])
            return None
        except requests.RequestException as exc:
            logger.debug("Exception fetching HA config: %s", exc)
            return None

    def get_timezone(self) -> Optional[str]:
        cfg = self.get_config()
        if cfg:
            return cfg.get("time_zone") or cfg.get("timeZone")
        return None
