import logging
import requests

logger = logging.getLogger(__name__)


class TourUpdateFailed(Exception):
    """The server did not accept a tour status change"""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def extract_error_message(payload):
    if not payload:
        return None
    if isinstance(payload, str):
        return payload
    if isinstance(payload, dict):
        message = payload.get('message') or payload.get('error')
        return message if isinstance(message, str) else None
    return None


class TourApiClient:
    """Thin HTTP client for the tours API"""

    def __init__(self, base_url, token=None, timeout=10, session=None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        if token:
            self.session.headers.update({'Authorization': f'Bearer {token}'})

    def update_status(self, tour_id, status, **extra):
        """POST /api/tours/update; raises TourUpdateFailed on any non-2xx"""
        body = {'tourId': tour_id, 'status': status}
        body.update({k: v for k, v in extra.items() if v is not None})

        try:
            response = self.session.post(
                f'{self.base_url}/api/tours/update',
                json=body,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Tour update request failed: {e}")
            raise TourUpdateFailed('Failed to update tour status')

        if not response.ok:
            try:
                details = response.json()
            except ValueError:
                details = None
            raise TourUpdateFailed(
                extract_error_message(details) or 'Failed to update tour status',
                status_code=response.status_code,
            )
        return True
