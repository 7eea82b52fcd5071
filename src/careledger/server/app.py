"""ASGI application for careledger."""
# mypy: ignore-errors

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from time import perf_counter
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import Body, Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel, ConfigDict, Field

from careledger import __version__, metrics
from careledger.classify import ExpenseClassifier
from careledger.config import Settings, get_settings
from careledger.errors import (
    CareLedgerError,
    ErrorKind,
    IncompleteExtraction,
    InvalidDraft,
    MileageError,
)
from careledger.integrations.mileage import MileageClient
from careledger.ledger import ExpenseMaterializer, draft_from_mileage, draft_from_receipt
from careledger.logging_utils import configure_logging as configure_app_logging
from careledger.models import (
    BankTransaction,
    ClassificationResult,
    DeductionSummary,
    DraftOverrides,
    Expense,
    ExpenseDraft,
    ExtractedReceipt,
    MileageEstimate,
    RawCapture,
    ScoredTransaction,
    SyncedTransaction,
    SyncSummary,
    TriageStats,
)
from careledger.models.receipt import CaptureSource
from careledger.ocr import ReceiptExtractor
from careledger.reports import export_csv, summarize_deductions
from careledger.server import deps
from careledger.triage import TriageQueue
from careledger.triage.queue import QueueView

logger = logging.getLogger(__name__)

STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.PAYLOAD_TOO_LARGE: status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
    ErrorKind.UNSUPPORTED_FORMAT: status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
    ErrorKind.EXTRACTION_FAILED: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.EXTRACTION_TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
    ErrorKind.INCOMPLETE_EXTRACTION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.ALREADY_DECIDED: status.HTTP_409_CONFLICT,
    ErrorKind.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorKind.TRANSACTION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.EXPENSE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_DRAFT: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.DUPLICATE_SOURCE_REF: status.HTTP_409_CONFLICT,
}


def _json_safe(value: Any) -> Any:
    """Convert non-serializable values into JSON-safe representations."""

    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, bytes):
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError:
            return value.hex()
    if isinstance(value, (list, tuple)):
        return [_json_safe(entry) for entry in value]
    if isinstance(value, dict):
        return {key: _json_safe(sub_value) for key, sub_value in value.items()}
    return repr(value)


def _normalize_validation_errors(errors: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Ensure validation error payloads can be serialized to JSON."""

    return [{key: _json_safe(value) for key, value in error.items()} for error in errors]


def _error_payload(exc: CareLedgerError) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "detail": str(exc),
        "kind": exc.kind.value,
        "retryable": exc.retryable,
    }
    if isinstance(exc, IncompleteExtraction):
        payload["missing"] = exc.missing
    if isinstance(exc, InvalidDraft):
        payload["field"] = exc.field
    if isinstance(exc, MileageError) and exc.details:
        payload["details"] = exc.details
    return payload


def _configure_logging(settings: Settings) -> None:
    secrets = [
        settings.api_token or "",
        settings.ocr_api_key or "",
        settings.mileage_api_key or "",
    ]
    configure_app_logging(settings.log_level, settings.log_format, secrets)


class ExtractReceiptRequest(BaseModel):
    image_base64: str = Field(alias="imageBase64", min_length=1)
    source: CaptureSource = "file"
    timeout_seconds: Optional[float] = Field(default=None, gt=0, le=120)

    model_config = ConfigDict(populate_by_name=True)


class ExtractReceiptResponse(BaseModel):
    receipt: ExtractedReceipt
    classification: ClassificationResult
    draft: ExpenseDraft


class SyncRequest(BaseModel):
    transactions: list[BankTransaction] = Field(default_factory=list)


class MileageRequest(BaseModel):
    from_: Optional[str] = Field(default=None, alias="from", max_length=500)
    to: Optional[str] = Field(default=None, max_length=500)
    from_place_id: Optional[str] = Field(default=None, alias="fromPlaceId")
    to_place_id: Optional[str] = Field(default=None, alias="toPlaceId")
    trip_date: Optional[date] = Field(default=None, alias="date")
    care_recipient_id: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=2000)

    model_config = ConfigDict(populate_by_name=True)


class MileageResponse(BaseModel):
    estimate: MileageEstimate
    draft: Optional[ExpenseDraft] = None


def create_app() -> FastAPI:
    """Create and configure a FastAPI application instance."""

    settings = get_settings()
    _configure_logging(settings)

    application = FastAPI(title="careledger", version=__version__)
    logger.debug("Application created with log level %s", settings.log_level)

    if settings.log_requests:
        access_logger = logging.getLogger("careledger.access")

        @application.middleware("http")
        async def log_request_response(request: Request, call_next):
            """Log request/response details without leaking sensitive data."""

            request_id = request.headers.get("X-Request-ID") or uuid4().hex
            request.state.request_id = request_id
            start = perf_counter()
            path = request.url.path
            method = request.method
            extra = {"request_id": request_id, "user_id": request.headers.get("X-User-ID")}
            try:
                response: Response = await call_next(request)
            except Exception:
                duration_ms = (perf_counter() - start) * 1000
                access_logger.exception(
                    "HTTP %s %s status=500 duration_ms=%.2f",
                    method,
                    path,
                    duration_ms,
                    extra=extra,
                )
                metrics.REQUEST_COUNT.labels(method=method, path=path, status="500").inc()
                metrics.REQUEST_LATENCY.labels(method=method, path=path).observe(
                    duration_ms / 1000.0
                )
                raise

            duration_ms = (perf_counter() - start) * 1000
            response.headers.setdefault("X-Request-ID", request_id)
            access_logger.info(
                "HTTP %s %s status=%s duration_ms=%.2f",
                method,
                path,
                response.status_code,
                duration_ms,
                extra=extra,
            )
            metrics.REQUEST_COUNT.labels(
                method=method,
                path=path,
                status=str(response.status_code),
            ).inc()
            metrics.REQUEST_LATENCY.labels(method=method, path=path).observe(
                duration_ms / 1000.0
            )
            return response

    @application.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        log_kwargs: dict[str, Any] = {}
        request_id = getattr(request.state, "request_id", None)
        if request_id:
            log_kwargs["extra"] = {"request_id": request_id}

        # Bodies may carry receipt images, so only the error locations are logged.
        logger.warning(
            "Validation error on %s %s: %s",
            request.method,
            request.url.path,
            [error.get("loc") for error in exc.errors()],
            **log_kwargs,
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": _normalize_validation_errors(exc.errors())},
        )

    @application.exception_handler(CareLedgerError)
    async def careledger_exception_handler(request: Request, exc: CareLedgerError):
        if isinstance(exc, MileageError):
            status_code = exc.status_code
        else:
            status_code = STATUS_BY_KIND.get(exc.kind, status.HTTP_400_BAD_REQUEST)
        logger.info(
            "Request %s %s failed kind=%s status=%s",
            request.method,
            request.url.path,
            exc.kind.value,
            status_code,
            extra={"error_kind": exc.kind.value},
        )
        return JSONResponse(status_code=status_code, content=_error_payload(exc))

    @application.get("/healthz", include_in_schema=False)
    def healthz() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    @application.get("/metrics", include_in_schema=False)
    def metrics_endpoint() -> Response:
        payload = generate_latest()
        return Response(content=payload, media_type=CONTENT_TYPE_LATEST)

    @application.post(
        "/receipts/extract",
        response_model=ExtractReceiptResponse,
        summary="Extract expense fields from a receipt image",
    )
    async def receipts_extract(
        payload: ExtractReceiptRequest,
        auth: None = Depends(deps.require_api_token),
        user_id: str = Depends(deps.get_user_id),
        extractor: ReceiptExtractor = Depends(deps.get_receipt_extractor),
        classifier: ExpenseClassifier = Depends(deps.get_classifier),
        settings: Settings = Depends(get_settings),
    ) -> ExtractReceiptResponse:
        capture = RawCapture(payload=payload.image_base64, source=payload.source)
        receipt = await extractor.extract(capture, timeout=payload.timeout_seconds)
        classification = classifier.classify(receipt)
        draft = draft_from_receipt(receipt, classification, settings=settings)
        logger.debug("Receipt draft prepared user=%s source=%s", user_id, draft.source_ref)
        return ExtractReceiptResponse(
            receipt=receipt,
            classification=classification,
            draft=draft,
        )

    @application.post(
        "/transactions/sync",
        response_model=SyncSummary,
        summary="Import bank transactions into the review queue",
    )
    def transactions_sync(
        payload: SyncRequest,
        auth: None = Depends(deps.require_api_token),
        queue: TriageQueue = Depends(deps.get_triage_queue),
    ) -> SyncSummary:
        return queue.sync(payload.transactions)

    @application.get(
        "/transactions",
        response_model=list[ScoredTransaction],
        summary="List pending transactions in review order",
    )
    def transactions_list(
        view: QueueView = Query(default="all"),
        queue: TriageQueue = Depends(deps.get_triage_queue),
    ) -> list[ScoredTransaction]:
        return queue.pending(view).all()

    @application.get(
        "/transactions/stats",
        response_model=TriageStats,
        summary="Counts of transactions by review state",
    )
    def transactions_stats(
        queue: TriageQueue = Depends(deps.get_triage_queue),
    ) -> TriageStats:
        return queue.stats()

    @application.get(
        "/transactions/{transaction_id}",
        response_model=SyncedTransaction,
        summary="Retrieve a synced transaction",
    )
    def transactions_get(
        transaction_id: int,
        queue: TriageQueue = Depends(deps.get_triage_queue),
    ) -> SyncedTransaction:
        return queue.get(transaction_id)

    @application.post(
        "/transactions/{transaction_id}/keep",
        response_model=ExpenseDraft,
        summary="Keep a transaction and return its expense draft",
    )
    def transactions_keep(
        transaction_id: int,
        overrides: Optional[DraftOverrides] = Body(default=None),
        auth: None = Depends(deps.require_api_token),
        queue: TriageQueue = Depends(deps.get_triage_queue),
    ) -> ExpenseDraft:
        return queue.keep(transaction_id, overrides)

    @application.post(
        "/transactions/{transaction_id}/skip",
        response_model=SyncedTransaction,
        summary="Skip a transaction",
    )
    def transactions_skip(
        transaction_id: int,
        auth: None = Depends(deps.require_api_token),
        queue: TriageQueue = Depends(deps.get_triage_queue),
    ) -> SyncedTransaction:
        return queue.skip(transaction_id)

    @application.post(
        "/transactions/{transaction_id}/reset",
        response_model=SyncedTransaction,
        summary="Undo a keep or skip decision",
    )
    def transactions_reset(
        transaction_id: int,
        auth: None = Depends(deps.require_api_token),
        queue: TriageQueue = Depends(deps.get_triage_queue),
    ) -> SyncedTransaction:
        return queue.reset(transaction_id)

    @application.post(
        "/expenses",
        response_model=Expense,
        status_code=status.HTTP_201_CREATED,
        summary="Record an expense from a draft",
    )
    def expenses_create(
        draft: ExpenseDraft,
        auth: None = Depends(deps.require_api_token),
        materializer: ExpenseMaterializer = Depends(deps.get_materializer),
    ) -> Expense:
        return materializer.materialize(draft)

    @application.get(
        "/expenses",
        response_model=list[Expense],
        summary="List recorded expenses",
    )
    def expenses_list(
        tax_year: Optional[int] = Query(default=None, ge=1900, le=2100),
        user_id: str = Depends(deps.get_user_id),
        provider: deps.ExpenseListProvider = Depends(deps.get_expense_list_provider),
    ) -> list[Expense]:
        return provider(user_id, tax_year)

    @application.get(
        "/expenses/{expense_id}",
        response_model=Expense,
        summary="Fetch one recorded expense",
    )
    def expenses_get(
        expense_id: int,
        materializer: ExpenseMaterializer = Depends(deps.get_materializer),
    ) -> Expense:
        return materializer.get(expense_id)

    @application.post(
        "/mileage",
        response_model=MileageResponse,
        summary="Estimate medical mileage and its deduction",
    )
    async def mileage_estimate(
        payload: MileageRequest,
        auth: None = Depends(deps.require_api_token),
        user_id: str = Depends(deps.get_user_id),
        client: MileageClient = Depends(deps.get_mileage_client),
    ) -> MileageResponse:
        estimate = await client.estimate(
            payload.from_,
            payload.to,
            from_place_id=payload.from_place_id,
            to_place_id=payload.to_place_id,
        )
        draft = None
        if payload.trip_date is not None:
            draft = draft_from_mileage(
                estimate,
                payload.trip_date,
                care_recipient_id=payload.care_recipient_id,
                notes=payload.notes,
            )
        return MileageResponse(estimate=estimate, draft=draft)

    @application.get(
        "/reports/deductions",
        response_model=DeductionSummary,
        summary="Summarize tax-deductible expenses for a year",
    )
    def reports_deductions(
        tax_year: int = Query(ge=1900, le=2100),
        agi: Optional[Decimal] = Query(default=None, ge=0),
        user_id: str = Depends(deps.get_user_id),
        provider: deps.ExpenseListProvider = Depends(deps.get_expense_list_provider),
        settings: Settings = Depends(get_settings),
    ) -> DeductionSummary:
        return summarize_deductions(provider(user_id, tax_year), tax_year, agi, settings=settings)

    @application.get(
        "/reports/deductions.csv",
        summary="Download tax-deductible expenses as CSV",
    )
    def reports_deductions_csv(
        tax_year: int = Query(ge=1900, le=2100),
        user_id: str = Depends(deps.get_user_id),
        provider: deps.ExpenseListProvider = Depends(deps.get_expense_list_provider),
        settings: Settings = Depends(get_settings),
    ) -> Response:
        content = export_csv(provider(user_id, tax_year), tax_year, settings=settings)
        headers = {
            "Content-Disposition": f'attachment; filename="tax-deductible-expenses-{tax_year}.csv"'
        }
        return Response(content=content, media_type="text/csv", headers=headers)

    return application


app = create_app()

__all__ = ["app", "create_app", "STATUS_BY_KIND"]
