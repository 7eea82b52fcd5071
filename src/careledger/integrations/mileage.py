"""Client for the driving-distance function used for medical mileage deductions."""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Optional

import httpx

from careledger.config import Settings, get_settings
from careledger.errors import MileageError
from careledger.models.report import MileageEstimate

logger = logging.getLogger(__name__)

METERS_PER_MILE = Decimal("1609.344")


def _decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        return None
    return result if result.is_finite() else None


def meters_to_miles(meters: Decimal) -> Decimal:
    return (meters / METERS_PER_MILE).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)


def mileage_deduction(miles: Decimal, rate: Decimal) -> Decimal:
    return (miles * rate).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class MileageClient:
    """Ask the distance function for a route and price it at the IRS medical rate."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        *,
        settings: Optional[Settings] = None,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._url = base_url or self._settings.mileage_endpoint_url
        self._api_key = api_key or self._settings.mileage_api_key
        self._timeout = timeout
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["apikey"] = self._api_key
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def estimate(
        self,
        from_: Optional[str],
        to: Optional[str],
        *,
        from_place_id: Optional[str] = None,
        to_place_id: Optional[str] = None,
    ) -> MileageEstimate:
        origin = (from_ or "").strip()
        destination = (to or "").strip()
        if (not origin and not from_place_id) or (not destination and not to_place_id):
            raise MileageError(
                "Missing 'from'/'to' address or place id.",
                status_code=400,
            )
        if not self._url:
            raise MileageError("Mileage endpoint is not configured.", status_code=503)

        payload: Dict[str, Any] = {"from": origin or None, "to": destination or None}
        if from_place_id:
            payload["fromPlaceId"] = from_place_id
        if to_place_id:
            payload["toPlaceId"] = to_place_id

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(self._url, json=payload, headers=self._headers())
        except httpx.TimeoutException as exc:
            raise MileageError("Mileage service timed out.", status_code=504) from exc
        except httpx.HTTPError as exc:
            raise MileageError(
                "Could not reach the mileage service.", status_code=502, details=str(exc)
            ) from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise MileageError(
                "Mileage service returned an unreadable response.",
                status_code=502,
                details=response.text[:500],
            ) from exc

        if not isinstance(body, dict):
            raise MileageError("Mileage service returned an unexpected payload.", status_code=502)

        if response.is_error or body.get("error"):
            status = response.status_code if response.is_error else 502
            raise MileageError(
                str(body.get("error") or f"Mileage service returned HTTP {status}."),
                status_code=status,
                details=str(body["details"]) if body.get("details") is not None else None,
            )

        return self._to_estimate(body, origin, destination)

    def _to_estimate(self, body: Dict[str, Any], origin: str, destination: str) -> MileageEstimate:
        miles = _decimal(body.get("miles"))
        if miles is None and (meters := _decimal(body.get("meters"))) is not None:
            miles = meters_to_miles(meters)
        if miles is None:
            raise MileageError("Mileage service response did not include a distance.", status_code=502)

        rate = _decimal(body.get("rate")) or self._settings.irs_mileage_rate
        deduction = _decimal(body.get("deduction"))
        if deduction is None:
            deduction = mileage_deduction(miles, rate)

        duration = body.get("durationMinutes")
        logger.info("Mileage estimate miles=%s deduction=%s", miles, deduction)
        return MileageEstimate(
            miles=miles,
            origin=str(body.get("origin") or origin),
            destination=str(body.get("destination") or destination),
            duration_minutes=int(duration) if isinstance(duration, (int, float)) else None,
            rate=rate,
            deduction=deduction.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP),
        )


def build_mileage_client(settings: Optional[Settings] = None) -> Optional[MileageClient]:
    settings = settings or get_settings()
    if not settings.mileage_endpoint_url:
        return None
    return MileageClient(settings=settings)


__all__ = [
    "MileageClient",
    "build_mileage_client",
    "meters_to_miles",
    "mileage_deduction",
]
