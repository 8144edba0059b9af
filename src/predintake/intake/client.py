"""Async REST client for the intake endpoints (list, approve, reject)."""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from predintake.intake.errors import IntakeAPIError
from predintake.models import ApprovalRequest, MarketRecord, RejectRequest

log = structlog.get_logger(__name__)

INTAKE_PATH = "/api/polymarket/intake"
APPROVE_PATH = "/api/polymarket/intake/approve"
REJECT_PATH = "/api/polymarket/intake/reject"


def _error_message(resp: httpx.Response, fallback: str) -> str:
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        msg = body.get("detail") or body.get("error")
        if isinstance(msg, str) and msg:
            return msg
    return f"{fallback} (HTTP {resp.status_code})"


class IntakeClient:
    """Thin wrapper over httpx.AsyncClient. Non-2xx and transport errors raise IntakeAPIError."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def __aenter__(self) -> IntakeClient:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, fallback: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            log.warning("intake_request_error", method=method, path=path, error=str(e))
            raise IntakeAPIError(f"{fallback}: {e}") from e
        if resp.is_error:
            message = _error_message(resp, fallback)
            log.warning("intake_request_failed", method=method, path=path, status=resp.status_code)
            raise IntakeAPIError(message, status_code=resp.status_code)
        return resp

    async def list_markets(self, search: str | None = None, status: str | None = None) -> list[MarketRecord]:
        """GET the intake queue. Optional server-side filters; rows that fail validation are skipped."""
        params = {}
        if search:
            params["search"] = search
        if status:
            params["status"] = status
        resp = await self._request("GET", INTAKE_PATH, "Failed to load intake data", params=params)
        try:
            data = resp.json()
        except ValueError as e:
            raise IntakeAPIError("Unexpected intake response: body is not JSON", status_code=resp.status_code) from e
        if not isinstance(data, list):
            raise IntakeAPIError("Unexpected intake response shape", status_code=resp.status_code)
        records = []
        for row in data:
            try:
                records.append(MarketRecord.model_validate(row))
            except ValidationError as e:
                polymarket_id = row.get("polymarketId") if isinstance(row, dict) else None
                log.warning("skip_intake_row", polymarket_id=polymarket_id, error=str(e))
        return records

    async def approve(self, request: ApprovalRequest) -> dict[str, Any]:
        resp = await self._request("POST", APPROVE_PATH, "Approve failed", json=request.to_wire())
        log.info(
            "intake_approved",
            polymarket_id=request.polymarket_id,
            internal_event_id=request.internal_event_id,
            market_type=request.market_type,
        )
        try:
            body = resp.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    async def reject(self, polymarket_id: str, reason: str | None = None) -> None:
        body = RejectRequest(polymarket_id=polymarket_id, reason=reason or None)
        await self._request("POST", REJECT_PATH, "Reject failed", json=body.to_wire())
        log.info("intake_rejected", polymarket_id=polymarket_id)
