"""
Praxis OS Backend: Web Push Delivery
=====================================

What:  Sends encrypted Web Push messages with VAPID authentication.
How:   pywebpush does the encryption and the HTTP call (blocking, via
       requests), so each send runs in Starlette's threadpool. Transient
       failures are retried with tenacity.

Resilience Strategy:
    Retried (exponential backoff + jitter, PUSH_RETRY_* settings):
        - connection errors and timeouts
        - 429 Too Many Requests, 5xx from the push provider
    Not retried:
        - 404 / 410: subscription expired or revoked → DeliveryOutcome.GONE
        - any other 4xx: payload or VAPID problem → DeliveryOutcome.FAILED

    These retries belong to push delivery only; nothing in the request
    pipeline itself is retried.
"""

import json
import logging
from typing import Any, Dict
from urllib.parse import urlparse

import requests
from pywebpush import WebPushException, webpush
from starlette.concurrency import run_in_threadpool
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from praxis.config import settings
from praxis.exceptions import ConfigurationError
from praxis.services.push_base import DeliveryOutcome, PushSender

logger = logging.getLogger(__name__)

GONE_STATUSES = {404, 410}


def _response_status(exc: WebPushException) -> int:
    response = getattr(exc, "response", None)
    return getattr(response, "status_code", 0) or 0


def is_transient(exc: BaseException) -> bool:
    """True for failures worth another attempt."""
    if isinstance(exc, (requests.ConnectionError, requests.Timeout)):
        return True
    if isinstance(exc, WebPushException):
        status = _response_status(exc)
        return status == 429 or status >= 500
    return False


class WebPushSender(PushSender):
    def ensure_configured(self) -> None:
        if not settings.vapid_configured:
            raise ConfigurationError(context={"setting": "VAPID_PUBLIC_KEY/VAPID_PRIVATE_KEY/VAPID_SUBJECT"})

    async def send(self, subscription: Dict[str, Any], payload: Dict[str, Any]) -> DeliveryOutcome:
        endpoint = str(subscription.get("endpoint", ""))
        try:
            await self._send_with_retry(subscription, json.dumps(payload))
        except WebPushException as e:
            status = _response_status(e)
            if status in GONE_STATUSES:
                logger.info("Push endpoint gone (%d): %s", status, _endpoint_host(endpoint))
                return DeliveryOutcome.GONE
            logger.warning("Push delivery failed (%d) for %s", status, _endpoint_host(endpoint))
            return DeliveryOutcome.FAILED
        except requests.RequestException as e:
            logger.warning("Push transport error for %s: %s", _endpoint_host(endpoint), type(e).__name__)
            return DeliveryOutcome.FAILED
        return DeliveryOutcome.SENT

    @retry(
        retry=retry_if_exception(is_transient),
        stop=stop_after_attempt(settings.push_retry_max_attempts),
        wait=wait_exponential_jitter(
            multiplier=settings.push_retry_initial_wait,
            max=settings.push_retry_max_wait,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _send_with_retry(self, subscription: Dict[str, Any], data: str) -> None:
        # webpush() adds aud/exp to the claims dict it is given
        claims = {"sub": settings.vapid_subject}
        await run_in_threadpool(
            webpush,
            subscription_info=subscription,
            data=data,
            vapid_private_key=settings.vapid_private_key,
            vapid_claims=claims,
            ttl=settings.push_ttl_seconds,
        )


def _endpoint_host(endpoint: str) -> str:
    # Endpoint paths identify a device; only the push service host is logged
    return urlparse(endpoint).netloc or "<unknown>"


# Singleton instance
web_push_sender = WebPushSender()


def get_push_sender() -> PushSender:
    """FastAPI dependency; overridden in tests with a recording fake."""
    return web_push_sender
