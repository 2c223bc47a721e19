"""
==============================================================================
Scan Audit Service Module
==============================================================================

Fire-and-forget posting of scan audit entries to the audit service.

This module implements:
- HttpScanAuditLogger: POSTs `{barcode, scanType, userId, notes}` to
  `{audit_base_url}/scan-logs` on the running event loop

Failure Policy:
--------------
An audit failure must never interrupt scanning. `record()` only schedules
the post and returns; transport errors and non-2xx responses become
AuditLogError inside the task and are logged at warning level, nothing more.

==============================================================================
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Set

import httpx

from app.config import Settings, get_settings
from app.core.exceptions import AuditLogError
from app.scanner.models import ScanAuditEntry


# Module logger
logger = logging.getLogger(__name__)

SCAN_LOG_PATH = "/scan-logs"


class HttpScanAuditLogger:
    """
    Non-blocking scan audit client.

    Attributes:
        base_url: Audit service base URL
        sent: Number of entries accepted by the audit service
        failed: Number of entries that could not be delivered

    Example:
        >>> audit = HttpScanAuditLogger.from_settings(get_settings())
        >>> audit.record(entry)       # returns immediately
        >>> await audit.aclose()      # on shutdown
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 2.0,
        client: Optional[httpx.AsyncClient] = None
    ) -> None:
        """
        Initialize the audit logger.

        Args:
            base_url: Audit service base URL (without the /scan-logs path)
            timeout_seconds: Per-request timeout
            client: Pre-built client (tests inject one with a mock transport)
        """
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._client = client
        self._pending: Set[asyncio.Task] = set()

        self.sent = 0
        self.failed = 0

    @classmethod
    def from_settings(cls, settings: Settings) -> "HttpScanAuditLogger":
        return cls(settings.audit_base_url, settings.audit_timeout_seconds)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self._timeout)
        return self._client

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def record(self, entry: ScanAuditEntry) -> None:
        """Schedule delivery of one entry and return immediately."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.failed += 1
            logger.warning(f"No event loop, dropping audit entry for {entry.code!r}")
            return

        task = loop.create_task(self._deliver(entry))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def flush(self) -> None:
        """Wait for every scheduled delivery to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def aclose(self) -> None:
        """Drain pending deliveries and close the HTTP client."""
        await self.flush()
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        logger.debug(f"Audit logger closed (sent={self.sent}, failed={self.failed})")

    # =========================================================================
    # DELIVERY
    # =========================================================================

    async def _deliver(self, entry: ScanAuditEntry) -> None:
        try:
            await self._post(entry)
            self.sent += 1
        except AuditLogError as e:
            self.failed += 1
            logger.warning(f"Scan audit failed for {entry.code!r}: {e.details.get('reason')}")

    async def _post(self, entry: ScanAuditEntry) -> None:
        try:
            response = await self._get_client().post(SCAN_LOG_PATH, json=entry.to_payload())
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise AuditLogError(str(e) or e.__class__.__name__) from e
