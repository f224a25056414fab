"""JSON backups and CSV reports."""

import csv
import io
import json
import logging
from datetime import date, datetime

import finance_tracker
from finance_tracker import Card, Expense

logger = logging.getLogger(__name__)

REPORT_HEADERS = ["Date", "Description", "Amount", "Method", "Card", "Installments"]


class BackupError(ValueError):
    """Raised when a backup document cannot be restored."""


def backup_filename(today: date | None = None) -> str:
    today = today or date.today()
    return f"finance_backup_{today.isoformat()}.json"


def report_filename(today: date | None = None) -> str:
    today = today or date.today()
    return f"finance_report_{today.isoformat()}.csv"


def backup_data(now: datetime | None = None) -> dict:
    """Return the full local state as a backup document."""
    now = now or datetime.now()
    return {
        "expenses": [e.to_dict() for e in finance_tracker.get_expenses()],
        "initialBalances": finance_tracker.get_initial_balances(),
        "cards": {c.id: c.to_dict() for c in finance_tracker.get_cards()},
        "timestamp": now.isoformat(),
    }


def export_backup(now: datetime | None = None) -> str:
    return json.dumps(backup_data(now), indent=2, ensure_ascii=False)


def restore_backup(text: str | bytes) -> dict[str, int]:
    """Replace local movements and balances with those in a backup.

    Cards are replaced too when the backup carries them. Returns the number
    of restored movements, balances and cards.
    """
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise BackupError(f"Error reading backup file: {e}") from e
    if not isinstance(data, dict) or "expenses" not in data or "initialBalances" not in data:
        raise BackupError("The file does not have the expected backup format.")

    expenses = finance_tracker.clean_expenses(data["expenses"])
    balances = finance_tracker.clean_balances(data["initialBalances"])
    cards = finance_tracker.clean_cards(data["cards"]) if data.get("cards") else None
    finance_tracker.replace_all(expenses=expenses, balances=balances, cards=cards)
    logger.info(
        "Restored %d movements and %d balances from backup", len(expenses), len(balances)
    )
    return {
        "expenses": len(expenses),
        "balances": len(balances),
        "cards": len(cards) if cards is not None else 0,
    }


def csv_report(expenses: list[Expense], cards: dict[str, Card]) -> str:
    """Return movements as CSV text with every cell quoted."""
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(REPORT_HEADERS)
    for e in expenses:
        card = cards.get(e.card_id) if e.card_id else None
        writer.writerow(
            [
                e.date,
                e.description,
                e.amount,
                e.payment_method,
                card.name if card else "",
                e.installments or 0,
            ]
        )
    return output.getvalue()
