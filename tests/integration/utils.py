"""Shared helpers for integration tests."""

from __future__ import annotations

from careledger.config import get_settings

USER_ID = "caregiver-1"


def auth_headers(user_id: str = USER_ID) -> dict[str, str]:
    headers = {"X-User-ID": user_id}
    token = get_settings().api_token
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def transaction_payload(source_id: str, description: str, amount_cents: int, posted: str) -> dict:
    return {
        "id": source_id,
        "account_id": "checking",
        "amount_cents": amount_cents,
        "posted_date": posted,
        "raw_description": description,
    }
