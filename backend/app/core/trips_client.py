"""Async client for the upstream trips API (checkpoints and trip completion)."""

import asyncio
import logging
from dataclasses import dataclass

import httpx

from app.config import settings
from app.core.geo import valid_coordinates

logger = logging.getLogger(__name__)

# Retry configuration
MAX_RETRIES = 2
RETRY_BACKOFF = [1, 2]  # seconds between retries


class CompletionSubmitError(Exception):
    """The completion workflow rejected or could not receive a submission."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass
class RawCheckpoint:
    city: str
    lat: float | None = None
    lon: float | None = None

    @property
    def coordinates(self) -> tuple[float, float] | None:
        if self.lat is None or self.lon is None:
            return None
        return (self.lat, self.lon)


class TripsClient:
    """Talks to the trips service that owns journey records."""

    def __init__(
        self,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_backoff: list[float] | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.trips_api_url,
            timeout=settings.http_timeout_seconds,
            headers={"Accept": "application/json"},
            transport=transport,
        )
        self._backoff = RETRY_BACKOFF if retry_backoff is None else retry_backoff

    async def close(self) -> None:
        await self._client.aclose()

    async def _request_with_retry(
        self, method: str, path: str, label: str, **kwargs,
    ) -> httpx.Response:
        """Send a request, retrying timeouts, connect errors and 5xx.

        Raises the last httpx error once retries are exhausted.
        """
        for attempt in range(MAX_RETRIES + 1):
            try:
                resp = await self._client.request(method, path, **kwargs)
                resp.raise_for_status()
                return resp
            except (httpx.TimeoutException, httpx.ConnectError) as e:
                if attempt >= MAX_RETRIES:
                    logger.error("%s failed after %d attempts: %s", label, MAX_RETRIES + 1, e)
                    raise
                wait = self._backoff[min(attempt, len(self._backoff) - 1)] if self._backoff else 0
                logger.warning(
                    "%s attempt %d/%d failed (%s), retrying in %ss",
                    label, attempt + 1, MAX_RETRIES + 1, type(e).__name__, wait,
                )
                await asyncio.sleep(wait)
            except httpx.HTTPStatusError as e:
                if e.response.status_code < 500 or attempt >= MAX_RETRIES:
                    raise
                wait = self._backoff[min(attempt, len(self._backoff) - 1)] if self._backoff else 0
                logger.warning(
                    "%s attempt %d/%d got HTTP %d, retrying in %ss",
                    label, attempt + 1, MAX_RETRIES + 1, e.response.status_code, wait,
                )
                await asyncio.sleep(wait)
        raise RuntimeError("unreachable")

    async def fetch_checkpoints(self, journey_id: str) -> list[RawCheckpoint]:
        """Recorded checkpoints for a journey, or [] when unavailable or malformed."""
        label = f"checkpoints for {journey_id}"
        try:
            resp = await self._request_with_retry("GET", f"/api/trips/{journey_id}/checkpoints", label)
            data = resp.json()
        except httpx.HTTPError as e:
            logger.warning("Failed to fetch %s: %s", label, e)
            return []
        except ValueError:
            logger.warning("Invalid JSON in %s", label)
            return []

        if isinstance(data, dict):
            if data.get("success") is False:
                return []
            items = data.get("checkpoints", data.get("route", data.get("waypoints", [])))
        else:
            items = data
        if not isinstance(items, list):
            logger.warning("Malformed %s: expected list, got %s", label, type(items).__name__)
            return []

        checkpoints = []
        for item in items:
            cp = self._parse_checkpoint(item)
            if cp is None:
                # One bad record makes the list untrustworthy as a whole
                logger.warning("Malformed checkpoint in %s: %r", label, item)
                return []
            checkpoints.append(cp)

        logger.info("Fetched %d checkpoints for journey %s", len(checkpoints), journey_id)
        return checkpoints

    @staticmethod
    def _parse_checkpoint(item) -> RawCheckpoint | None:
        if isinstance(item, str):
            return RawCheckpoint(city=item) if item.strip() else None
        if not isinstance(item, dict):
            return None
        city = str(item.get("city") or item.get("name") or "").strip()
        if not city:
            return None
        lat = item.get("lat", item.get("latitude"))
        lon = item.get("lon", item.get("lng", item.get("longitude")))
        cp = RawCheckpoint(city=city)
        if valid_coordinates(lat, lon):
            cp.lat, cp.lon = float(lat), float(lon)
        return cp

    async def submit_completion(self, journey_id: str, payload: dict) -> dict:
        """Forward a completion (rating, review, photos) to the trips service."""
        label = f"completion for {journey_id}"
        try:
            resp = await self._request_with_retry(
                "POST", f"/api/trips/{journey_id}/complete", label, json=payload,
            )
        except httpx.HTTPStatusError as e:
            message = self._error_message(e.response) or f"HTTP {e.response.status_code}"
            logger.error("Trips service rejected %s: %s", label, message)
            raise CompletionSubmitError(message, status_code=e.response.status_code) from e
        except httpx.HTTPError as e:
            logger.error("Failed to submit %s: %s", label, e)
            raise CompletionSubmitError("Failed to complete trip") from e

        try:
            data = resp.json()
        except ValueError:
            data = {}
        if isinstance(data, dict) and data.get("success") is False:
            raise CompletionSubmitError(data.get("message") or "Failed to complete trip")
        logger.info("Journey %s marked completed upstream", journey_id)
        return data if isinstance(data, dict) else {}

    @staticmethod
    def _error_message(resp: httpx.Response) -> str | None:
        try:
            data = resp.json()
        except ValueError:
            return None
        if isinstance(data, dict):
            return data.get("message")
        return None
