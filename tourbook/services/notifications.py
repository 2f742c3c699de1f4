import logging
import requests

logger = logging.getLogger(__name__)


class NotificationTrigger:
    """Fire-and-forget POST of {userId, reason} to the notification endpoint.

    Delivery failures are logged and swallowed; a tour change never depends
    on the notification going out.
    """

    def __init__(self, url=None, timeout=5, session=None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests

    def notify(self, user_id, reason):
        if not self.url:
            logger.warning(f"NOTIFICATIONS_URL is not set. Skipping '{reason}' notification for {user_id}")
            return False

        try:
            response = self.session.post(
                self.url,
                json={'userId': str(user_id), 'reason': reason},
                timeout=self.timeout,
            )
            response.raise_for_status()
            return True
        except requests.RequestException as e:
            logger.error(f"Failed to trigger '{reason}' notification for {user_id}: {e}")
            return False
        except Exception:
            logger.exception(f"Unexpected error triggering '{reason}' notification for {user_id}")
            return False
