"""
purge.py — Best-effort invalidation of cached copies of share URLs.

Every backend is called with a short timeout and any failure is logged and
ignored: a slow or broken cache must never undo or stall a link change.

Backends are configured from the environment:
  PDS_PURGE_URLS                comma-separated reverse proxies accepting PURGE
  PDS_CLOUDFLARE_ZONE_ID        enables the Cloudflare backend together with
  PDS_CLOUDFLARE_API_TOKEN
  PDS_PURGE_TIMEOUT             seconds per call (default 2.0)
  PDS_AGGRESSIVE_CACHE_FLUSH    also flush whole caches where supported
"""

import os
import httpx
import logging
from typing import Iterable, List, Optional
from urllib.parse import urlsplit, urlunsplit

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

PURGE_URLS = [u.strip() for u in os.getenv("PDS_PURGE_URLS", "").split(",") if u.strip()]
CLOUDFLARE_ZONE_ID = os.getenv("PDS_CLOUDFLARE_ZONE_ID", "")
CLOUDFLARE_API_TOKEN = os.getenv("PDS_CLOUDFLARE_API_TOKEN", "")
CLOUDFLARE_API = "https://api.cloudflare.com/client/v4"
AGGRESSIVE_FLUSH = os.getenv("PDS_AGGRESSIVE_CACHE_FLUSH", "false").lower() == "true"

try:
    PURGE_TIMEOUT = float(os.getenv("PDS_PURGE_TIMEOUT", "2.0"))
except ValueError:
    PURGE_TIMEOUT = 2.0


def url_variants(url: str) -> List[str]:
    """The URL itself plus its query-less form, for caches that ignore ?v=."""
    parts = urlsplit(url)
    bare = urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))
    variants = []
    for candidate in (url, bare):
        if candidate and candidate not in variants:
            variants.append(candidate)
    return variants


class PurgeBackend:
    name = "backend"

    def purge(self, url: str, timeout: float) -> bool:
        raise NotImplementedError

    def flush(self, timeout: float) -> bool:
        """Drop the whole cache. Backends that cannot do this return False."""
        return False


class HttpPurgeBackend(PurgeBackend):
    """Varnish / nginx style: send ``PURGE <path>`` to the cache endpoint."""

    name = "http"

    def __init__(self, endpoint: str, client: Optional[httpx.Client] = None):
        self.endpoint = endpoint.rstrip("/")
        self._client = client

    def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        if self._client is not None:
            return self._client.request(method, url, **kwargs)
        return httpx.request(method, url, **kwargs)

    def purge(self, url: str, timeout: float) -> bool:
        parts = urlsplit(url)
        target = self.endpoint + (parts.path or "/")
        if parts.query:
            target += "?" + parts.query
        headers = {"Host": parts.netloc} if parts.netloc else {}
        response = self._request("PURGE", target, headers=headers, timeout=timeout)
        # Caches answer 404 when nothing was stored under the key
        if response.status_code == 404:
            return True
        response.raise_for_status()
        return True


class CloudflarePurgeBackend(PurgeBackend):
    name = "cloudflare"

    def __init__(self, zone_id: str, api_token: str, client: Optional[httpx.Client] = None):
        self.zone_id = zone_id
        self.api_token = api_token
        self._client = client

    def _post(self, payload: dict, timeout: float) -> bool:
        url = f"{CLOUDFLARE_API}/zones/{self.zone_id}/purge_cache"
        headers = {"Authorization": f"Bearer {self.api_token}"}
        if self._client is not None:
            response = self._client.post(url, json=payload, headers=headers, timeout=timeout)
        else:
            response = httpx.post(url, json=payload, headers=headers, timeout=timeout)
        response.raise_for_status()
        return bool(response.json().get("success", False))

    def purge(self, url: str, timeout: float) -> bool:
        return self._post({"files": [url]}, timeout)

    def flush(self, timeout: float) -> bool:
        return self._post({"purge_everything": True}, timeout)


class CachePurger:

    def __init__(
        self,
        backends: Iterable[PurgeBackend] = (),
        timeout: float = PURGE_TIMEOUT,
        aggressive_flush: bool = AGGRESSIVE_FLUSH,
    ):
        self.backends = list(backends)
        self.timeout = timeout
        self.aggressive_flush = aggressive_flush

    def _call(self, backend: PurgeBackend, action: str, *args) -> bool:
        try:
            return bool(getattr(backend, action)(*args, timeout=self.timeout))
        except httpx.TimeoutException:
            logger.warning(f"Cache {action} via {backend.name} timed out after {self.timeout}s. Ignoring.")
        except (httpx.ConnectError, httpx.HTTPStatusError) as e:
            logger.warning(f"Cache {action} via {backend.name} failed: {e}. Ignoring.")
        except Exception as e:
            logger.error(f"Cache {action} via {backend.name} unexpected error: {e}. Ignoring.")
        return False

    def purge(self, url: Optional[str]) -> int:
        """Purge *url* everywhere. Returns the number of successful backend calls."""
        if not url or not self.backends:
            return 0
        ok = 0
        for variant in url_variants(url):
            for backend in self.backends:
                if self._call(backend, "purge", variant):
                    ok += 1
        if self.aggressive_flush:
            for backend in self.backends:
                if self._call(backend, "flush"):
                    ok += 1
        if ok:
            logger.info(f"Purged cached copies of {urlsplit(url).path.rsplit('/', 1)[0]}/… ({ok} ok)")
        return ok


def build_purger_from_env() -> CachePurger:
    backends: List[PurgeBackend] = [HttpPurgeBackend(u) for u in PURGE_URLS]
    if CLOUDFLARE_ZONE_ID and CLOUDFLARE_API_TOKEN:
        backends.append(CloudflarePurgeBackend(CLOUDFLARE_ZONE_ID, CLOUDFLARE_API_TOKEN))
    return CachePurger(backends)
