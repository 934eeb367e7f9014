"""Usage telemetry: one anonymous record per non-interactive run.

Reporting is best effort. It only happens when usage tracking is enabled,
and any failure is logged as a warning without affecting the run.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Protocol, runtime_checkable

import httpx
from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


class ExecutionData(BaseModel):
    """What is reported about one run."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    time_execution_ms: int
    valid_result: bool
    timezone: str
    version: str
    id_docker: str = ""

    @staticmethod
    def local_timezone() -> str:
        """UTC offset of the local clock, e.g. ``+02:00``."""
        offset = datetime.now().astimezone().strftime("%z")
        return f"{offset[:3]}:{offset[3:]}" if offset else "+00:00"


@runtime_checkable
class TelemetrySink(Protocol):
    """Transport for execution records."""

    def send(self, data: ExecutionData) -> None: ...


class HttpTelemetrySink:
    """Posts execution records as JSON to a collector endpoint."""

    def __init__(self, url: str, *, timeout: float = 3.0, client: httpx.Client | None = None) -> None:
        self._url = url
        self._client = client or httpx.Client(timeout=timeout)

    def send(self, data: ExecutionData) -> None:
        response = self._client.post(self._url, json=data.model_dump())
        response.raise_for_status()

    def close(self) -> None:
        self._client.close()


class TelemetryReporter:
    """Gates and shields telemetry delivery.

    Parameters
    ----------
    sink:
        Where records go; ``None`` disables reporting.
    enabled:
        The user's usage-tracking preference.
    """

    def __init__(self, sink: TelemetrySink | None, *, enabled: bool) -> None:
        self._sink = sink
        self.enabled = enabled

    @property
    def active(self) -> bool:
        return self.enabled and self._sink is not None

    def report(self, data: ExecutionData) -> bool:
        """Send *data* if active. Returns whether it was delivered."""
        if not self.active:
            logger.debug("Telemetry disabled, not reporting run")
            return False
        try:
            self._sink.send(data)  # type: ignore[union-attr]
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to send usage data: %s", exc)
            return False
        logger.debug("Reported run of version %s", data.version)
        return True
