"""
Client for the external concierge webhook.

The endpoint receives the user's message as JSON and answers with
{"reply": ...}, {"message": ...} or plain text.
"""
import logging

import requests
from django.conf import settings

from gerezim.core.exceptions import WebhookError

logger = logging.getLogger(__name__)

WEBHOOK_SETTING_KEY = 'webhook_url'


def parse_body(response):
    """JSON body of a response, or {'message': text} when it is not JSON"""
    try:
        data = response.json()
    except ValueError:
        return {'message': response.text}
    if not isinstance(data, dict):
        return {'message': response.text}
    return data


def extract_reply(data):
    reply = data.get('reply') or data.get('message')
    return str(reply).strip() if reply else ''


class WebhookClient:

    def __init__(self, url, timeout=None):
        self.url = url
        self.timeout = timeout if timeout is not None else settings.CONCIERGE_WEBHOOK_TIMEOUT

    def post(self, payload):
        """
        POST payload as JSON and return the parsed body.

        Raises:
            WebhookError: transport failure or non-2xx answer
        """
        try:
            response = requests.post(
                self.url,
                json=payload,
                headers={'Content-Type': 'application/json'},
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            logger.warning(f"Concierge webhook unreachable ({self.url}): {str(e)}")
            raise WebhookError(f"Falha ao chamar o webhook: {str(e)}") from e

        data = parse_body(response)
        if not response.ok:
            logger.warning(f"Concierge webhook answered {response.status_code}: {response.text[:200]}")
            error = WebhookError(f"Webhook respondeu com status {response.status_code}")
            error.upstream_status = response.status_code
            error.upstream_body = data
            raise error
        return data

    def send(self, payload):
        """POST payload and return the reply text ('' when the endpoint gave none)"""
        return extract_reply(self.post(payload))
