"""requests session wrapper used to pull telemetry batches from collectors."""
import time
import logging
import requests

logger = logging.getLogger("netalert.http")


class APIError(Exception):
    """Collector answered, but not with a usable JSON body."""
    def __init__(self, message, status_code=None, response_body=None, source=None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body
        self.source = source


class HTTPClient:
    """GET with bounded retries.

    429 and 5xx are retried with exponential backoff (or Retry-After when the
    server sends one). Other 4xx fail immediately. Once retries run out the
    last error is raised, either an APIError or the requests exception.
    """

    RETRYABLE_STATUS = {429, 500, 502, 503, 504}

    def __init__(self, base_url, timeout=10, max_retries=2, headers=None, backoff_cap=30):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_cap = backoff_cap
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": "NetAlert/1.0", **(headers or {})})

    def url_for(self, path):
        return f"{self.base_url}/{path.lstrip('/')}" if path else self.base_url

    def get(self, path="", params=None):
        url = self.url_for(path)
        attempts = self.max_retries + 1
        last_error = None

        for attempt in range(attempts):
            wait = self._backoff(attempt)
            try:
                started = time.time()
                resp = self.session.request("GET", url, params=params, timeout=self.timeout)
                logger.debug(f"GET {url} → {resp.status_code} ({int((time.time() - started) * 1000)}ms)")
            except requests.exceptions.RequestException as e:
                logger.warning(f"Request error for {url}: {e} (attempt {attempt + 1}/{attempts})")
                last_error = e
            else:
                if resp.status_code == 200:
                    return self._json(resp, url)
                if resp.status_code not in self.RETRYABLE_STATUS:
                    raise APIError(f"HTTP {resp.status_code} from {url}",
                                   status_code=resp.status_code, response_body=resp.text)
                retry_after = resp.headers.get("Retry-After")
                if retry_after:
                    wait = float(retry_after)
                logger.warning(f"Retryable {resp.status_code} from {url} (attempt {attempt + 1}/{attempts})")
                last_error = APIError(f"HTTP {resp.status_code} from {url}", status_code=resp.status_code)

            if attempt < self.max_retries:
                time.sleep(wait)

        raise last_error

    def _backoff(self, attempt):
        return min(2 ** attempt, self.backoff_cap)

    @staticmethod
    def _json(resp, url):
        try:
            return resp.json()
        except ValueError:
            raise APIError(f"Non-JSON response from {url}", status_code=200, response_body=resp.text)
