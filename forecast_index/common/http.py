import time
import base64
import random
import requests
from typing import Optional, Any, Callable
from urllib.parse import urlparse
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding
from forecast_index.common.config import config
from forecast_index.common.errors import SourceFetchError
from forecast_index.common.logging import logger
from forecast_index.common.schema import Source


class KalshiAuth(requests.auth.AuthBase):
    """Signs each request with the KALSHI-ACCESS-* headers (RSA-PSS over timestamp+method+path)."""

    def __init__(self, api_key_id: str, private_key_pem: str):
        self.api_key_id = api_key_id
        # Keys pasted into .env often carry literal \n sequences
        self.private_key = serialization.load_pem_private_key(
            private_key_pem.replace("\\n", "\n").encode(),
            password=None,
        )

    def sign(self, timestamp_ms: str, method: str, path: str) -> str:
        signature = self.private_key.sign(
            (timestamp_ms + method.upper() + path).encode(),
            padding.PSS(mgf=padding.MGF1(hashes.SHA256()), salt_length=padding.PSS.DIGEST_LENGTH),
            hashes.SHA256(),
        )
        return base64.b64encode(signature).decode()

    def __call__(self, r):
        timestamp_ms = str(int(time.time() * 1000))
        # Kalshi signs the path only; query strings are excluded
        path = urlparse(r.url).path
        r.headers["KALSHI-ACCESS-KEY"] = self.api_key_id
        r.headers["KALSHI-ACCESS-TIMESTAMP"] = timestamp_ms
        r.headers["KALSHI-ACCESS-SIGNATURE"] = self.sign(timestamp_ms, r.method, path)
        return r


class HttpClient:
    """
    Thin requests.Session wrapper shared by the grabbers.

    Retries 429, 5xx and connection errors with jittered exponential backoff.
    Other 4xx responses fail immediately. Failures surface as SourceFetchError.
    """

    def __init__(
        self,
        base_url: str,
        source: Source,
        auth: Optional[requests.auth.AuthBase] = None,
        timeout: float = config.request_timeout,
        max_retries: int = 5,
        base_backoff: float = 1.0,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.base_url = base_url.rstrip("/")
        self.source = source
        self.auth = auth
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_backoff = base_backoff
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})
        self._sleep = sleep

    def _backoff(self, attempt: int) -> float:
        return (self.base_backoff * (2 ** attempt)) + random.uniform(0, self.base_backoff)

    def _wait_before_retry(self, attempt: int):
        # The final attempt fails straight through to SourceFetchError
        if attempt >= self.max_retries - 1:
            return
        wait_time = self._backoff(attempt)
        logger.info(f"{self.source.value}: retrying in {wait_time:.2f}s...")
        self._sleep(wait_time)

    def request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = path if path.startswith("http") else f"{self.base_url}/{path.lstrip('/')}"
        kwargs.setdefault("timeout", self.timeout)
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries):
            try:
                response = self.session.request(method, url, auth=self.auth, **kwargs)
                if response.status_code == 429 or response.status_code >= 500:
                    last_error = requests.exceptions.HTTPError(
                        f"{response.status_code} from {path}", response=response
                    )
                    logger.warning(
                        f"{self.source.value}: {response.status_code} on {path} "
                        f"(attempt {attempt + 1}/{self.max_retries})"
                    )
                    self._wait_before_retry(attempt)
                    continue

                response.raise_for_status()
                return response

            except requests.exceptions.HTTPError as e:
                # Remaining HTTP errors are 4xx client errors; retrying will not help
                logger.error(f"{self.source.value}: request to {path} failed: {e}")
                raise SourceFetchError(self.source.value, path, e) from e
            except requests.exceptions.RequestException as e:
                last_error = e
                logger.warning(f"{self.source.value}: request to {path} failed: {e}")
                self._wait_before_retry(attempt)

        logger.error(f"{self.source.value}: request to {path} failed after {self.max_retries} retries")
        raise SourceFetchError(self.source.value, path, last_error or RuntimeError("no attempts made"))

    def get(self, path: str, **kwargs) -> requests.Response:
        return self.request("GET", path, **kwargs)

    def get_json(self, path: str, **kwargs) -> Any:
        response = self.get(path, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise SourceFetchError(self.source.value, path, e) from e


def get_kalshi_client() -> HttpClient:
    if not config.kalshi_api_key_id or not config.kalshi_private_key:
        logger.warning("Kalshi API credentials not found in environment; sending unsigned requests.")
        return HttpClient(config.kalshi_base_url, Source.KALSHI)
    auth = KalshiAuth(config.kalshi_api_key_id, config.kalshi_private_key)
    return HttpClient(config.kalshi_base_url, Source.KALSHI, auth=auth)


def get_metaculus_client() -> HttpClient:
    client = HttpClient(config.metaculus_base_url, Source.METACULUS)
    if config.metaculus_token:
        client.session.headers.update({"Authorization": f"Token {config.metaculus_token}"})
    return client


def get_manifold_client() -> HttpClient:
    return HttpClient(config.manifold_base_url, Source.MANIFOLD)


def get_polymarket_client() -> HttpClient:
    return HttpClient(config.polymarket_clob_url, Source.POLYMARKET)

# --- LESSONS LEARNED ---
# 1. Kalshi V2 Auth: KALSHI-ACCESS-KEY/TIMESTAMP/SIGNATURE headers, RSA-PSS with
#    MGF1-SHA256 and salt length = digest length, message = timestamp + method + path.
# 2. Rate limits: 429s come in bursts; jitter on the backoff keeps retries from lining up.
# 3. Session reuse: one requests.Session per client keeps the TCP connection pooled.
