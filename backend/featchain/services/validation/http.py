import logging
import time
from typing import Any, Callable, Dict, Optional

import requests

from .errors import SourceResponseError, TransientSourceError
from .retry import call_with_retry, should_retry_http_status

logger = logging.getLogger(__name__)


class JsonHttpClient:
    """GET-only JSON client with a timeout and bounded retry on transient errors."""

    def __init__(self, base_url: str, user_agent: str, timeout: float = 10.0,
                 retry_attempts: int = 3, retry_delay: float = 1.0,
                 session: Optional[requests.Session] = None,
                 sleep: Callable[[float], None] = time.sleep,
                 headers: Optional[Dict[str, str]] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self._sleep = sleep
        self.session = session or requests.Session()
        self.session.headers.update({'User-Agent': user_agent})
        if headers:
            self.session.headers.update(headers)

    def get_json(self, path: str = '', params: Optional[Dict[str, Any]] = None) -> Any:
        return call_with_retry(
            self._get_once, path, params,
            attempts=self.retry_attempts,
            delay=self.retry_delay,
            sleep=self._sleep,
        )

    def _get_once(self, path: str, params: Optional[Dict[str, Any]]) -> Any:
        url = f"{self.base_url}{path}" if path else self.base_url
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise TransientSourceError(f"GET {url} failed: {exc}") from exc
        except requests.RequestException as exc:
            raise SourceResponseError(f"GET {url} failed: {exc}") from exc

        if should_retry_http_status(response.status_code):
            raise TransientSourceError(f"GET {url} returned {response.status_code}")
        if response.status_code >= 400:
            raise SourceResponseError(f"GET {url} returned {response.status_code}")
        try:
            return response.json()
        except ValueError as exc:
            raise SourceResponseError(f"GET {url} returned a non-JSON body") from exc
