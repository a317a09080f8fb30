from __future__ import annotations

import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Optional, Tuple

import requests
from loguru import logger

from config import Configuration
from models import Coordinates


class GeoapifyError(RuntimeError):
    pass


@dataclass
class _RetryPolicy:
    retries: int = 3
    base_delay: float = 0.5


class GeoapifyClient:
    """Venue geocoder backed by the Geoapify search API."""

    def __init__(self, cfg: Configuration, session: Optional[requests.Session] = None) -> None:
        self.cfg = cfg
        self.base = cfg.geoapify_base_url.rstrip("/")
        self.session = session or requests.Session()
        self._cache_ttl = 60 * 60 * 24  # venues do not move
        self._cache_max = 512
        self._geocode_cache: OrderedDict[str, Tuple[float, Optional[Coordinates]]] = OrderedDict()

    def _cache_get(self, key: str) -> Tuple[bool, Optional[Coordinates]]:
        entry = self._geocode_cache.get(key)
        if not entry:
            return False, None
        ts, value = entry
        if time.time() - ts > self._cache_ttl:
            self._geocode_cache.pop(key, None)
            return False, None
        self._geocode_cache.move_to_end(key)
        return True, value

    def _cache_set(self, key: str, value: Optional[Coordinates]) -> None:
        if len(self._geocode_cache) >= self._cache_max:
            self._geocode_cache.popitem(last=False)
        self._geocode_cache[key] = (time.time(), value)

    def _get(self, path: str, params: dict) -> dict:
        url = f"{self.base}{path}"
        headers = {"Accept": "application/json"}
        params = {**params, "apiKey": self.cfg.geoapify_api_key}
        policy = _RetryPolicy()
        attempt = 0
        while True:
            attempt += 1
            try:
                resp = self.session.get(url, headers=headers, params=params, timeout=self.cfg.geoapify_timeout)
            except requests.RequestException as exc:  # network error
                if attempt <= policy.retries:
                    time.sleep(policy.base_delay * attempt)
                    continue
                raise GeoapifyError(f"request error: {exc}")

            if resp.status_code in (429, 500, 502, 503, 504):
                if attempt <= policy.retries:
                    time.sleep(policy.base_delay * attempt)
                    continue
                snippet = resp.text[:300]
                raise GeoapifyError(f"upstream {resp.status_code}: {snippet}")

            if not resp.ok:
                snippet = resp.text[:300]
                raise GeoapifyError(f"upstream {resp.status_code}: {snippet}")

            try:
                return resp.json()
            except ValueError:
                raise GeoapifyError("invalid json response")

    def geocode(self, text: str, *, lang: str = "en") -> Optional[Coordinates]:
        key = f"geocode:{lang}:{text.strip().lower()}"
        hit, cached = self._cache_get(key)
        if hit:
            return cached
        payload = self._get(
            "/v1/geocode/search",
            {"text": text, "limit": 1, "lang": lang},
        )
        features = payload.get("features") or []
        if not features:
            self._cache_set(key, None)
            return None
        props: dict[str, Any] = features[0].get("properties") or {}
        lon = props.get("lon")
        lat = props.get("lat")
        if lon is None or lat is None:
            self._cache_set(key, None)
            return None
        result = (float(lon), float(lat))
        self._cache_set(key, result)
        return result

    def get_venue_coordinates(
        self, name: str, city: Optional[str] = None, country: Optional[str] = None
    ) -> Optional[Coordinates]:
        """Best-effort ``(lon, lat)`` for a stadium; None when nothing is found."""
        if not self.cfg.geoapify_api_key:
            logger.debug("geocoding skipped for {}: GEOAPIFY_API_KEY unset", name)
            return None
        text = ", ".join(part for part in (name, city, country) if part)
        return self.geocode(text)
