"""Dependency definitions for the careledger API server."""

from __future__ import annotations

from typing import Callable, List, Optional

from fastapi import Depends, Header, HTTPException, Request, status

from careledger.classify import ExpenseClassifier
from careledger.config import Settings, get_settings
from careledger.integrations.mileage import MileageClient, build_mileage_client
from careledger.ledger import ExpenseMaterializer, list_expenses
from careledger.models.expense import Expense
from careledger.ocr import ReceiptExtractor, build_ocr_endpoint
from careledger.triage import TriageQueue

ExpenseListProvider = Callable[[str, Optional[int]], List[Expense]]


def get_user_id(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-ID"),
) -> str:
    """Identity of the caller, asserted by the authenticating proxy in front of the API."""

    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="X-User-ID header is required."
        )
    return user_id


def get_classifier(settings: Settings = Depends(get_settings)) -> ExpenseClassifier:
    return ExpenseClassifier(settings)


def get_receipt_extractor(settings: Settings = Depends(get_settings)) -> ReceiptExtractor:
    endpoint = build_ocr_endpoint(settings)
    if endpoint is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Receipt OCR is not configured.",
        )
    return ReceiptExtractor(endpoint, settings=settings)


def get_triage_queue(
    user_id: str = Depends(get_user_id),
    settings: Settings = Depends(get_settings),
    classifier: ExpenseClassifier = Depends(get_classifier),
) -> TriageQueue:
    return TriageQueue(user_id, classifier=classifier, settings=settings)


def get_materializer(
    user_id: str = Depends(get_user_id),
    settings: Settings = Depends(get_settings),
) -> ExpenseMaterializer:
    return ExpenseMaterializer(user_id, settings=settings)


def get_expense_list_provider() -> ExpenseListProvider:
    return list_expenses


def get_mileage_client(settings: Settings = Depends(get_settings)) -> MileageClient:
    client = build_mileage_client(settings)
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Mileage service is not configured.",
        )
    return client


def require_api_token(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> None:
    """Ensure requests carry the configured API token when required."""

    token = settings.api_token
    if not token:
        return

    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.split("Bearer ")[-1].strip() == token:
        return

    if request.headers.get("X-API-Key") == token:
        return

    if request.query_params.get("api_token") == token:
        return

    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


__all__ = [
    "ExpenseListProvider",
    "get_user_id",
    "get_classifier",
    "get_receipt_extractor",
    "get_triage_queue",
    "get_materializer",
    "get_expense_list_provider",
    "get_mileage_client",
    "require_api_token",
]
