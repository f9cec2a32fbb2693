"""Fetch remote spec snapshots from an HTTP peer."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

import httpx

from manifold_cli.collaboration.sync import RemoteSnapshot
from manifold_cli.errors import SpecNotFoundError, SyncError
from manifold_cli.models import SpecData

logger = logging.getLogger(__name__)


class HttpSnapshotSource:
    """``SnapshotSource`` reading ``GET {base_url}/specs/{spec_id}``.

    The response is either a bare spec document or an envelope
    ``{"remote": <spec>, "base": <spec> | null}``. Transport errors and 5xx
    responses are retried with exponential backoff (1s, 2s, 4s, ...).
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        max_retries: int = 3,
        timeout: float = 10.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.max_retries = max(1, max_retries)
        self.timeout = timeout
        self._sleep = sleep

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _get(self, spec_id: str) -> Any:
        endpoint = f"{self.base_url}/specs/{spec_id}"
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries):
            try:
                response = httpx.get(endpoint, headers=self._headers(), timeout=self.timeout)
                if response.status_code == 404:
                    raise SpecNotFoundError(spec_id)
                if response.status_code < 500:
                    response.raise_for_status()
                    return response.json()
                last_error = httpx.HTTPStatusError(
                    f"Server error {response.status_code}", request=response.request, response=response
                )
            except httpx.HTTPStatusError as e:
                raise SyncError(f"Remote rejected request for {spec_id}: {e}") from e
            except (httpx.TransportError, ValueError) as e:
                last_error = e

            if attempt < self.max_retries - 1:
                delay = 2**attempt
                logger.warning(
                    "Fetching %s failed (%s); retrying in %ss", spec_id, last_error, delay
                )
                self._sleep(delay)

        raise SyncError(
            f"Failed to fetch {spec_id} after {self.max_retries} attempts. Last error: {last_error}"
        )

    def fetch(self, spec_id: str) -> RemoteSnapshot:
        payload = self._get(spec_id)
        try:
            if isinstance(payload, dict) and "remote" in payload:
                base = payload.get("base")
                return RemoteSnapshot(
                    remote=SpecData.from_dict(payload["remote"]),
                    base=SpecData.from_dict(base) if base is not None else None,
                )
            return RemoteSnapshot(remote=SpecData.from_dict(payload))
        except ValueError as e:
            raise SyncError(f"Remote returned an invalid spec for {spec_id}: {e}") from e
