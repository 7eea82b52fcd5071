"""Builders and fakes shared across test modules."""

from __future__ import annotations

import base64
import io
import struct
import zlib
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from PIL import Image
from pypdf import PdfReader, PdfWriter

from careledger.models.transaction import BankTransaction, SyncedTransaction


def png_bytes(size: int = 16) -> bytes:
    image = Image.new("RGB", (size, size), color=(255, 255, 255))
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def png_base64(size: int = 16) -> str:
    return base64.b64encode(png_bytes(size)).decode("ascii")


def pdf_document(pages: int = 1) -> bytes:
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=200, height=200)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def pdf_with_object_streams() -> bytes:
    """One-page PDF whose catalog, page tree and page live in a compressed object stream."""

    objects = [
        (2, b"<< /Type /Catalog /Pages 3 0 R >>"),
        (3, b"<< /Type /Pages /Kids [4 0 R] /Count 1 >>"),
        (4, b"<< /Type /Page /Parent 3 0 R /MediaBox [0 0 200 200] /Resources << >> >>"),
    ]
    body = b""
    index = []
    for number, obj in objects:
        index.append(b"%d %d" % (number, len(body)))
        body += obj + b"\n"
    header = b" ".join(index) + b" "
    packed = zlib.compress(header + body)

    document = bytearray(b"%PDF-1.5\n")
    stream_offset = len(document)
    document += b"1 0 obj\n<< /Type /ObjStm /N 3 /First %d /Filter /FlateDecode /Length %d >>\nstream\n" % (
        len(header),
        len(packed),
    )
    document += packed + b"\nendstream\nendobj\n"

    xref_offset = len(document)
    rows = [
        (0, 0, 65535),
        (1, stream_offset, 0),
        (2, 1, 0),
        (2, 1, 1),
        (2, 1, 2),
        (1, xref_offset, 0),
    ]
    table = b"".join(struct.pack(">BIH", *row) for row in rows)
    document += b"5 0 obj\n<< /Type /XRef /Size 6 /W [1 4 2] /Root 2 0 R /Length %d >>\nstream\n" % len(
        table
    )
    document += table + b"\nendstream\nendobj\nstartxref\n%d\n%%%%EOF\n" % xref_offset
    return bytes(document)


def pdf_with_incremental_update() -> bytes:
    """One-page PDF with an appended revision that replaces its page object."""

    base = pdf_document(pages=1)
    if not base.endswith(b"\n"):
        base += b"\n"
    reader = PdfReader(io.BytesIO(base))
    page = reader.pages[0]
    page_number = page.indirect_reference.idnum
    parent_number = page.raw_get("/Parent").idnum
    root_number = reader.trailer.raw_get("/Root").idnum
    size = int(reader.trailer["/Size"])
    previous = int(base.rsplit(b"startxref", 1)[1].split(b"%%EOF")[0])

    offset = len(base)
    replacement = (
        b"%d 0 obj\n<< /Type /Page /Parent %d 0 R /MediaBox [0 0 200 200] /Resources << >> /Rotate 90 >>\nendobj\n"
        % (page_number, parent_number)
    )
    xref_offset = offset + len(replacement)
    update = replacement + (
        b"xref\n0 1\n0000000000 65535 f \n%d 1\n%010d 00000 n \ntrailer\n<< /Size %d /Root %d 0 R /Prev %d >>\nstartxref\n%d\n%%%%EOF\n"
        % (page_number, offset, size, root_number, previous, xref_offset)
    )
    return base + update


def ocr_success(**data: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "merchant": "CVS Pharmacy",
        "category": "Pharmacy",
        "amount": "24.99",
        "date": "2024-03-05",
        "description": "Prescription pickup",
        "items": ["Lisinopril 10mg"],
        "confidence": {
            "merchant": 0.95,
            "category": 0.9,
            "amount": 0.92,
            "date": 0.9,
            "description": 0.8,
            "items": 0.7,
        },
    }
    payload.update(data)
    return {"success": True, "data": payload}


class FakeOcrEndpoint:
    """In-process OCR endpoint that records every call."""

    def __init__(self, response: Optional[Dict[str, Any]] = None, *, error: Exception | None = None):
        self.response = response if response is not None else ocr_success()
        self.error = error
        self.calls: List[str] = []

    async def recognize(self, image_base64: str) -> Dict[str, Any]:
        self.calls.append(image_base64)
        if self.error is not None:
            raise self.error
        return self.response


def bank_transaction(
    source_id: str = "tx-1",
    *,
    account_id: str = "acct-1",
    amount_cents: int = -2499,
    posted_date: date = date(2024, 3, 5),
    raw_description: str = "CVS/PHARMACY #1234",
    merchant_name: Optional[str] = None,
) -> BankTransaction:
    return BankTransaction(
        id=source_id,
        account_id=account_id,
        amount_cents=amount_cents,
        posted_date=posted_date,
        raw_description=raw_description,
        merchant_name_normalized=merchant_name,
    )


def synced(row_id: int, transaction: BankTransaction, user_id: str = "user-1") -> SyncedTransaction:
    return SyncedTransaction(
        id=row_id,
        user_id=user_id,
        transaction=transaction,
        synced_at=datetime(2024, 3, 6, 12, 0, 0),
    )
