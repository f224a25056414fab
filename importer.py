"""Spreadsheet ingestion: turn bank-style rows into movements.

Expected columns, after a header row::

    date | description | amount | type | card | installments

``type`` holds words such as "Cargo"/"Expense" or "Abono"/"Income". When it
is missing the sign of the amount decides.
"""

import csv
import io
import logging
import math
import zipfile
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Iterable

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

import finance_tracker
from finance_tracker import Card, Expense

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".xlsx", ".csv")
# Spreadsheet serial number of 1970-01-01 in the 1900 date system.
EPOCH_SERIAL = 25569
INCOME_WORDS = ("abono", "ingreso", "income", "deposit")
EXPENSE_WORDS = ("cargo", "gasto", "expense", "charge")


class SpreadsheetError(ValueError):
    """Raised when a spreadsheet cannot be read or confirmed."""


def read_spreadsheet(file, filename: str) -> list[list[Any]]:
    """Return the rows of the first sheet of an .xlsx or .csv upload."""
    ext = Path(filename or "").suffix.lower()
    if ext not in SUPPORTED_EXTENSIONS:
        raise SpreadsheetError(
            f"Unsupported file type: {filename or '<unknown>'}. Supported: xlsx, csv."
        )
    if ext == ".csv":
        data = file.read()
        if isinstance(data, bytes):
            data = data.decode("utf-8-sig")
        return [row for row in csv.reader(io.StringIO(data))]
    try:
        wb = load_workbook(file, read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as e:
        raise SpreadsheetError(f"Could not read workbook {filename}: {e}") from e
    try:
        ws = wb.worksheets[0]
        return [list(r) for r in ws.iter_rows(values_only=True)]
    finally:
        wb.close()


def _blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_amount(value) -> float | None:
    if isinstance(value, bool) or _blank(value):
        return None
    if isinstance(value, (int, float)):
        return None if math.isnan(value) else float(value)
    try:
        return float(str(value).replace("$", "").replace(",", "").strip())
    except ValueError:
        return None


def parse_cell_date(value, today: date) -> str:
    """Return a YYYY-MM-DD string for a date cell."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (date(1970, 1, 1) + timedelta(days=math.floor(value) - EPOCH_SERIAL)).isoformat()
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if "/" in text:
            parts = text.split("/")
            if len(parts) == 3:
                day, month, year = (p.strip() for p in parts)
                if len(year) == 2:
                    year = "20" + year
                return f"{year}-{month.zfill(2)}-{day.zfill(2)}"
            return today.isoformat()
        return text
    return today.isoformat()


def parse_kind(value) -> str | None:
    if not isinstance(value, str):
        return None
    lower = value.lower()
    if any(w in lower for w in INCOME_WORDS):
        return "income"
    if any(w in lower for w in EXPENSE_WORDS):
        return "expense"
    return None


def parse_installments(value) -> int:
    if isinstance(value, bool) or _blank(value):
        return 0
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def parse_rows(
    rows: Iterable[list[Any]], cards: Iterable[Card], today: date | None = None
) -> list[dict]:
    """Normalize spreadsheet rows into raw movement dicts, skipping the header."""
    today = today or date.today()
    cards = list(cards)
    result: list[dict] = []
    for i, row in enumerate(rows):
        if i == 0:
            continue
        if not row or all(_blank(c) for c in row):
            continue
        cells = list(row) + [None] * (6 - len(row))
        date_raw, desc, amount_raw, type_raw, card_name, msi = cells[:6]
        amount = parse_amount(amount_raw)
        if _blank(desc) and amount is None:
            continue

        card_id = None
        method = "Cash"
        if not _blank(card_name):
            card = finance_tracker.find_card_by_name(str(card_name), cards)
            if card:
                card_id = card.id
                method = "Card"

        result.append(
            {
                "date": parse_cell_date(date_raw, today),
                "description": "" if _blank(desc) else str(desc).strip(),
                "amount": amount,
                "payment_method": method,
                "card_id": card_id,
                "installments": parse_installments(msi),
                "type": parse_kind(type_raw),
            }
        )
    logger.info("Parsed %d movements from spreadsheet", len(result))
    return result


def preview_rows(raw: Iterable[dict], today: date | None = None) -> list[dict]:
    """Return editable preview rows with absolute amounts and a movement type."""
    today = today or date.today()
    rows: list[dict] = []
    for r in raw:
        amount = r.get("amount") or 0.0
        kind = r.get("type")
        if kind not in ("income", "expense"):
            kind = "expense" if amount < 0 else "income"
        rows.append(
            {
                "date": r.get("date") or today.isoformat(),
                "description": r.get("description") or "",
                "amount": abs(amount),
                "type": kind,
                "payment_method": r.get("payment_method") or "Card",
                "card_id": r.get("card_id") or "",
                "installments": r.get("installments") or 0,
            }
        )
    return rows


def row_errors(rows: Iterable[dict]) -> list[str]:
    """Return a message for each preview row whose date cannot be stored."""
    errors: list[str] = []
    for i, r in enumerate(rows):
        try:
            finance_tracker.check_date(r.get("date"))
        except ValueError as e:
            errors.append(f"Row {i + 1}: {e}")
    return errors


def apply_card(rows: Iterable[dict], card_id: str) -> list[dict]:
    """Assign every preview row to the given card."""
    if not card_id:
        return list(rows)
    return [dict(r, card_id=card_id, payment_method="Card") for r in rows]


def confirm_rows(
    rows: Iterable[dict],
    cards: dict[str, Card] | None = None,
    now: int | None = None,
) -> list[Expense]:
    """Turn preview rows into movements ready to store."""
    now = finance_tracker.now_ms() if now is None else now
    cards = finance_tracker.cards_by_id() if cards is None else cards
    expenses: list[Expense] = []
    for i, r in enumerate(rows):
        try:
            date_str = finance_tracker.check_date(r["date"])
        except ValueError as e:
            raise SpreadsheetError(f"Row {i + 1}: {e}") from None
        amount = abs(float(r.get("amount") or 0))
        card_id = r.get("card_id") or None
        method = finance_tracker.normalize_method(r.get("payment_method"))
        if method != "Card" or card_id not in cards:
            card_id = None
            if method == "Card":
                method = "Cash"
        card = cards.get(card_id) if card_id else None
        installments = int(r.get("installments") or 0) if card and card.is_credit else 0
        expenses.append(
            Expense(
                id=now + i,
                description=r.get("description") or "",
                amount=-amount if r.get("type") == "expense" else amount,
                date=date_str,
                payment_method=method,
                card_id=card_id,
                installments=installments,
            )
        )
    return expenses
