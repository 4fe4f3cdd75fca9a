"""Alert delivery through Home Assistant notify services."""

import logging
from typing import List

from shared.ha_api import HomeAssistantApi

from .errors import ConfigError
from .settings import ReserveSettings, normalize_subscription

logger = logging.getLogger(__name__)


class Notifier:
    """Fans an alert out to a persistent notification and every subscribed
    ``notify.*`` service.

    Delivery is best effort: failures are logged and reported through the
    return value, never raised.
    """

    def __init__(self, ha_api: HomeAssistantApi, settings: ReserveSettings, persistent: bool = True):
        self.ha_api = ha_api
        self.settings = settings
        self.persistent = persistent

    def notify(self, subject: str, message: str) -> bool:
        """Send ``subject``/``message`` to all targets.

        Returns:
            True if at least one target accepted the alert
        """
        logger.warning("%s: %s", subject, message)
        delivered = False

        if self.persistent:
            delivered |= self.ha_api.call_service(
                'persistent_notification', 'create',
                {'title': subject, 'message': message, 'notification_id': 'reserve_adjuster'},
            )

        try:
            services = self.settings.subscriptions()
        except ConfigError as e:
            logger.error("Could not read notify subscriptions: %s", e)
            services = []

        for service in services:
            delivered |= self.ha_api.call_service('notify', service, {'title': subject, 'message': message})

        if not delivered:
            logger.error("Alert '%s' could not be delivered to any target", subject)
        return delivered

    def subscribe(self, address: str) -> List[str]:
        """Add a notify service (``mobile_app_x`` or ``notify.mobile_app_x``)."""
        subscriptions = self.settings.add_subscription(address)
        logger.info("Subscribed notify.%s to alerts", normalize_subscription(address))
        return subscriptions

    def unsubscribe(self, address: str) -> List[str]:
        subscriptions = self.settings.remove_subscription(address)
        logger.info("Unsubscribed notify.%s from alerts", normalize_subscription(address))
        return subscriptions

    def get_subscriptions(self) -> List[str]:
        return self.settings.subscriptions()
