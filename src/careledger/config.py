"""Application configuration helpers."""

from __future__ import annotations

import os
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from pathlib import Path
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict, Field

ENV_FILE_CANDIDATES = (Path(".env"), Path(".env.local"))


class Settings(BaseModel):
    """Global settings loaded from environment variables or .env files.

    Components take a ``Settings`` instance explicitly so tests can build one
    with overridden thresholds instead of patching module state.
    """

    database_path: Path = Field(
        default=Path("./data/careledger.db"),
        description="SQLite database location.",
    )
    api_token: Optional[str] = Field(
        default=None,
        description="Bearer token required for authenticated endpoints.",
    )
    log_level: str = Field(default="INFO", description="Logging level (DEBUG/INFO/WARNING/ERROR)")
    log_format: str = Field(
        default="plain",
        description="Logging format (plain/json).",
    )
    log_requests: bool = Field(
        default=True,
        description="Emit request access logs when true.",
    )

    ocr_endpoint_url: Optional[str] = Field(
        default=None,
        description="Receipt OCR function URL accepting {imageBase64}.",
    )
    ocr_api_key: Optional[str] = Field(
        default=None,
        description="Key sent as apikey/Bearer header to the OCR function.",
    )
    ocr_timeout_seconds: float = Field(
        default=30.0,
        description="Default upper bound for one OCR call when the caller passes none.",
    )
    max_capture_bytes: int = Field(
        default=10 * 1024 * 1024,
        description="Largest decoded receipt capture accepted for extraction.",
    )
    amount_confidence_threshold: float = Field(
        default=0.5,
        description="Amount confidence below this value flags the amount field.",
    )
    field_confidence_threshold: float = Field(
        default=0.5,
        description="Confidence below this value flags any other extracted field.",
    )
    ambiguous_confidence_cap: float = Field(
        default=0.3,
        description="Confidence ceiling for values that only parsed in best-effort mode.",
    )
    default_field_confidence: float = Field(
        default=0.0,
        description="Confidence assigned to populated fields the model did not score.",
    )

    medical_likelihood: float = Field(
        default=0.8,
        description="Starting deductibility likelihood for medical keyword matches.",
    )
    transportation_likelihood: float = Field(
        default=0.5,
        description="Starting deductibility likelihood for transportation matches.",
    )
    unmatched_likelihood: float = Field(
        default=0.1,
        description="Deductibility likelihood when no keyword matches.",
    )
    micro_amount_threshold: Decimal = Field(
        default=Decimal("1.00"),
        description="Amounts below this (in dollars) are treated as holds or test charges.",
    )
    micro_amount_penalty: float = Field(default=0.1)
    large_amount_threshold: Decimal = Field(
        default=Decimal("250.00"),
        description="Medical amounts at or above this get the large amount bonus.",
    )
    large_amount_bonus: float = Field(default=0.05)
    refund_factor: float = Field(
        default=0.5,
        description="Multiplier applied to the likelihood of bank credits/refunds.",
    )
    candidate_threshold: float = Field(
        default=0.6,
        description="Likelihood at or above which a transaction is a review candidate.",
    )

    duplicate_window_days: int = Field(
        default=3,
        description="Posted-date window used when flagging possible duplicate transactions.",
    )
    duplicate_similarity: float = Field(
        default=90.0,
        description="rapidfuzz token_set_ratio at or above which merchants count as the same.",
    )
    clock_skew_days: int = Field(
        default=1,
        description="How far in the future an expense date may be before it is rejected.",
    )

    mileage_endpoint_url: Optional[str] = Field(
        default=None,
        description="Distance function URL accepting {from, to, fromPlaceId, toPlaceId}.",
    )
    mileage_api_key: Optional[str] = Field(default=None)
    irs_mileage_rate: Decimal = Field(
        default=Decimal("0.21"),
        description="Medical mileage rate in dollars per mile.",
    )
    agi_floor_rate: Decimal = Field(
        default=Decimal("0.075"),
        description="Share of AGI below which medical expenses are not deductible.",
    )

    model_config = ConfigDict(frozen=True)


def _coerce_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _coerce_decimal(value: str) -> Decimal:
    try:
        return Decimal(value.strip())
    except InvalidOperation as exc:
        raise ValueError(value) from exc


def _parse_env_file(path: Path) -> dict[str, str]:
    payload: dict[str, str] = {}
    try:
        with path.open("r", encoding="utf-8") as handle:
            for raw_line in handle:
                line = raw_line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue
                key, raw_value = line.split("=", 1)
                payload[key.strip()] = raw_value.strip()
    except FileNotFoundError:
        return {}
    return payload


def _load_env_file_values() -> dict[str, str]:
    values: dict[str, str] = {}
    for candidate in ENV_FILE_CANDIDATES:
        values.update(_parse_env_file(candidate))
    return values


# env suffix -> (settings field, converter); every variable is prefixed CARELEDGER_
_ENV_FIELDS: dict[str, tuple[str, Callable[[str], object]]] = {
    "DATABASE_PATH": ("database_path", Path),
    "API_TOKEN": ("api_token", str),
    "LOG_LEVEL": ("log_level", str),
    "LOG_FORMAT": ("log_format", str),
    "LOG_REQUESTS": ("log_requests", _coerce_bool),
    "OCR_ENDPOINT_URL": ("ocr_endpoint_url", str),
    "OCR_API_KEY": ("ocr_api_key", str),
    "OCR_TIMEOUT_SECONDS": ("ocr_timeout_seconds", float),
    "MAX_CAPTURE_BYTES": ("max_capture_bytes", int),
    "AMOUNT_CONFIDENCE_THRESHOLD": ("amount_confidence_threshold", float),
    "FIELD_CONFIDENCE_THRESHOLD": ("field_confidence_threshold", float),
    "AMBIGUOUS_CONFIDENCE_CAP": ("ambiguous_confidence_cap", float),
    "DEFAULT_FIELD_CONFIDENCE": ("default_field_confidence", float),
    "MEDICAL_LIKELIHOOD": ("medical_likelihood", float),
    "TRANSPORTATION_LIKELIHOOD": ("transportation_likelihood", float),
    "UNMATCHED_LIKELIHOOD": ("unmatched_likelihood", float),
    "MICRO_AMOUNT_THRESHOLD": ("micro_amount_threshold", _coerce_decimal),
    "MICRO_AMOUNT_PENALTY": ("micro_amount_penalty", float),
    "LARGE_AMOUNT_THRESHOLD": ("large_amount_threshold", _coerce_decimal),
    "LARGE_AMOUNT_BONUS": ("large_amount_bonus", float),
    "REFUND_FACTOR": ("refund_factor", float),
    "CANDIDATE_THRESHOLD": ("candidate_threshold", float),
    "DUPLICATE_WINDOW_DAYS": ("duplicate_window_days", int),
    "DUPLICATE_SIMILARITY": ("duplicate_similarity", float),
    "CLOCK_SKEW_DAYS": ("clock_skew_days", int),
    "MILEAGE_ENDPOINT_URL": ("mileage_endpoint_url", str),
    "MILEAGE_API_KEY": ("mileage_api_key", str),
    "IRS_MILEAGE_RATE": ("irs_mileage_rate", _coerce_decimal),
    "AGI_FLOOR_RATE": ("agi_floor_rate", _coerce_decimal),
}


def _load_from_env() -> dict[str, object]:
    """Load optional overrides from env vars (with .env fallbacks).

    Values that fail to convert are ignored and the default is kept.
    """

    file_values = _load_env_file_values()

    def _env(key: str) -> Optional[str]:
        return os.environ.get(key) or file_values.get(key)

    payload: dict[str, object] = {}
    for suffix, (field_name, converter) in _ENV_FIELDS.items():
        raw = _env(f"CARELEDGER_{suffix}")
        if not raw:
            continue
        try:
            payload[field_name] = converter(raw)
        except ValueError:
            pass
    return payload


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings."""

    return Settings(**_load_from_env())
