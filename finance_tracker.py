#!/usr/bin/env python3
"""Personal finance tracker for cash, debit and credit accounts using SQLite."""

import argparse
import calendar
import logging
import os
import re
import sqlite3
import sys
import time
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Iterable

import auth

logger = logging.getLogger(__name__)

DEFAULT_DB = Path(__file__).with_name("finance.db")
DB_FILE = Path(os.environ.get("FINANCE_DB", DEFAULT_DB))

CARD_TYPES = ("debit", "credit")
PAYMENT_METHODS = ("Cash", "Card", "Transfer")
DEFAULT_CURRENCY = "MXN"
DEFAULT_COLOR = "bg-slate-800"
PRESET_COLORS = (
    "bg-blue-600",
    "bg-red-600",
    "bg-emerald-500",
    "bg-pink-500",
    "bg-purple-600",
    "bg-orange-500",
    "bg-slate-800",
    "bg-teal-600",
    "bg-indigo-600",
    "bg-rose-600",
    "bg-cyan-600",
    "bg-amber-500",
)
INSTALLMENT_OPTIONS = (0, 3, 6, 9, 12, 18, 24)
PAYMENT_DESCRIPTION = "CARD PAYMENT"
THEMES = ("light", "dark")

# Labels written by older exports of the tracker.
METHOD_ALIASES = {
    "efectivo": "Cash",
    "tarjeta": "Card",
    "transferencia": "Transfer",
}


def fmt(amount: float) -> str:
    """Return a string with thousand separators and two decimals."""
    return f"{amount:,.2f}"


def format_money(amount: float) -> str:
    return "$" + fmt(amount)


def now_ms() -> int:
    return int(time.time() * 1000)


def normalize_method(method: str | None) -> str:
    if not method:
        return "Cash"
    if method in PAYMENT_METHODS:
        return method
    return METHOD_ALIASES.get(method.strip().lower(), method.strip().title())


def check_date(value: str) -> str:
    """Return ``value`` if it is an ISO YYYY-MM-DD date, else raise ValueError."""
    try:
        return date.fromisoformat(value).isoformat()
    except (TypeError, ValueError):
        raise ValueError(f"Invalid date '{value}', expected YYYY-MM-DD") from None


def _optional_int(value) -> int | None:
    if value in (None, ""):
        return None
    return int(value)


def _optional_float(value) -> float | None:
    if value in (None, ""):
        return None
    return float(value)


@dataclass
class Card:
    """A debit account or credit card."""

    id: str
    name: str
    type: str = "debit"
    color: str = DEFAULT_COLOR
    cutoff_day: int | None = None
    grace_period: int | None = None
    interest_rate: float | None = None

    @property
    def is_credit(self) -> bool:
        return self.type == "credit"

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Card":
        """Build a card from a stored dict, accepting camelCase keys."""
        return cls(
            id=str(data["id"]),
            name=data["name"],
            type=data.get("type") or "debit",
            color=data.get("color") or DEFAULT_COLOR,
            cutoff_day=_optional_int(data.get("cutoff_day", data.get("cutoffDay"))),
            grace_period=_optional_int(
                data.get("grace_period", data.get("gracePeriod"))
            ),
            interest_rate=_optional_float(
                data.get("interest_rate", data.get("interestRate"))
            ),
        )


@dataclass
class Expense:
    """A single movement. Negative amounts are expenses."""

    id: int
    description: str
    amount: float
    date: str
    payment_method: str = "Cash"
    card_id: str | None = None
    installments: int = 0
    currency: str = DEFAULT_CURRENCY

    @property
    def is_expense(self) -> bool:
        return self.amount < 0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Expense":
        """Build a movement from a stored dict, accepting camelCase keys."""
        return cls(
            id=int(data["id"]),
            description=data.get("description") or "",
            amount=float(data["amount"]),
            date=check_date(str(data["date"])[:10]),
            payment_method=normalize_method(
                data.get("payment_method", data.get("paymentMethod"))
            ),
            card_id=data.get("card_id", data.get("cardId")) or None,
            installments=int(data.get("installments") or 0),
            currency=data.get("currency") or DEFAULT_CURRENCY,
        )


@dataclass
class CardSummary:
    card: Card
    initial: float
    balance: float = 0.0
    spent: float = 0.0
    paid: float = 0.0
    debt: float = 0.0
    monthly_due: float = 0.0
    movements: list[Expense] = field(default_factory=list)


def clean_expenses(items) -> list[Expense]:
    """Return movements that have an id, a date and a numeric amount."""
    result: list[Expense] = []
    if not isinstance(items, list):
        return result
    for item in items:
        if not isinstance(item, dict):
            continue
        amount = item.get("amount")
        if not item.get("id") or not item.get("date"):
            continue
        if isinstance(amount, bool) or not isinstance(amount, (int, float)):
            continue
        try:
            result.append(Expense.from_dict(item))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping malformed movement %r: %s", item.get("id"), e)
    return result


def clean_cards(items) -> list[Card]:
    """Return cards with a name from a mapping or list of card dicts."""
    if isinstance(items, dict):
        pairs = list(items.items())
    elif isinstance(items, list):
        pairs = [(None, c) for c in items]
    else:
        return []
    result: list[Card] = []
    for key, item in pairs:
        if not isinstance(item, dict) or not item.get("name"):
            continue
        data = dict(item)
        data.setdefault("id", key)
        if not data.get("id"):
            continue
        try:
            result.append(_normalize_card(Card.from_dict(data)))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping malformed card %r: %s", data.get("id"), e)
    return result


def clean_balances(data) -> dict[str, float]:
    if not isinstance(data, dict):
        return {}
    balances: dict[str, float] = {}
    for key, value in data.items():
        try:
            balances[str(key)] = abs(float(value))
        except (TypeError, ValueError):
            continue
    return balances


def get_connection():
    """Return a SQLite connection using the configured database file."""
    conn = sqlite3.connect(DB_FILE)
    conn.row_factory = sqlite3.Row
    return conn


def init_db():
    """Create database tables if they do not exist."""
    conn = get_connection()
    cur = conn.cursor()
    cur.execute(
        """CREATE TABLE IF NOT EXISTS cards (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                type TEXT CHECK(type IN ('debit','credit')) NOT NULL,
                color TEXT NOT NULL DEFAULT 'bg-slate-800',
                cutoff_day INTEGER,
                grace_period INTEGER,
                interest_rate REAL
            )"""
    )
    cur.execute(
        """CREATE TABLE IF NOT EXISTS balances (
                card_id TEXT PRIMARY KEY,
                amount REAL NOT NULL DEFAULT 0
            )"""
    )
    cur.execute(
        """CREATE TABLE IF NOT EXISTS expenses (
                id INTEGER PRIMARY KEY,
                description TEXT NOT NULL,
                amount REAL NOT NULL,
                currency TEXT NOT NULL DEFAULT 'MXN',
                payment_method TEXT NOT NULL DEFAULT 'Cash',
                card_id TEXT,
                installments INTEGER NOT NULL DEFAULT 0,
                date TEXT NOT NULL
            )"""
    )
    cur.execute(
        """CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value TEXT
            )"""
    )
    conn.commit()
    conn.close()


def _card_from_row(row) -> Card:
    return Card(
        id=row["id"],
        name=row["name"],
        type=row["type"],
        color=row["color"],
        cutoff_day=row["cutoff_day"],
        grace_period=row["grace_period"],
        interest_rate=row["interest_rate"],
    )


def _expense_from_row(row) -> Expense:
    return Expense(
        id=row["id"],
        description=row["description"],
        amount=row["amount"],
        date=row["date"],
        payment_method=row["payment_method"],
        card_id=row["card_id"],
        installments=row["installments"],
        currency=row["currency"],
    )


def make_card_id(name: str, stamp: int | None = None) -> str:
    """Return an id from the lowercased name and a timestamp suffix."""
    stamp = now_ms() if stamp is None else stamp
    slug = re.sub(r"\s+", "_", name.strip().lower())
    return f"{slug}_{str(stamp)[-4:]}"


def cycle_from_dates(
    cutoff_date: date, payment_date: date | None = None
) -> tuple[int, int | None]:
    """Return (cutoff day, grace period) read off a statement's dates."""
    grace = None
    if payment_date is not None:
        diff = (payment_date - cutoff_date).days
        if diff > 0:
            grace = diff
    return cutoff_date.day, grace


def _normalize_card(card: Card) -> Card:
    if card.type not in CARD_TYPES:
        raise ValueError(f"Unknown card type '{card.type}'")
    if not card.name or not card.name.strip():
        raise ValueError("Card name is required")
    if card.cutoff_day is not None and not 1 <= card.cutoff_day <= 31:
        raise ValueError("Cutoff day must be between 1 and 31")
    if card.grace_period is not None and card.grace_period < 0:
        raise ValueError("Grace period cannot be negative")
    if not card.is_credit:
        card.cutoff_day = None
        card.grace_period = None
        card.interest_rate = None
    card.color = card.color or DEFAULT_COLOR
    return card


def _write_card(conn, card: Card) -> None:
    conn.execute(
        (
            "INSERT INTO cards(id, name, type, color, cutoff_day, grace_period, interest_rate) "
            "VALUES(?,?,?,?,?,?,?) "
            "ON CONFLICT(id) DO UPDATE SET name=excluded.name, type=excluded.type, "
            "color=excluded.color, cutoff_day=excluded.cutoff_day, "
            "grace_period=excluded.grace_period, interest_rate=excluded.interest_rate"
        ),
        (
            card.id,
            card.name,
            card.type,
            card.color,
            card.cutoff_day,
            card.grace_period,
            card.interest_rate,
        ),
    )


def add_card(
    name: str,
    card_type: str = "debit",
    color: str = DEFAULT_COLOR,
    cutoff_day: int | None = None,
    grace_period: int | None = None,
    interest_rate: float | None = None,
    initial_balance: float | None = None,
) -> Card:
    """Create a new account and initialize its starting balance."""
    card = _normalize_card(
        Card(
            id=make_card_id(name),
            name=name.strip(),
            type=card_type,
            color=color,
            cutoff_day=cutoff_day,
            grace_period=grace_period,
            interest_rate=interest_rate,
        )
    )
    conn = get_connection()
    try:
        base = card.id
        suffix = int(base.rsplit("_", 1)[1])
        while conn.execute("SELECT 1 FROM cards WHERE id=?", (card.id,)).fetchone():
            suffix = (suffix + 1) % 10000
            card.id = f"{base.rsplit('_', 1)[0]}_{suffix:04d}"
        _write_card(conn, card)
        amount = abs(initial_balance) if initial_balance is not None else 0.0
        conn.execute(
            "INSERT OR REPLACE INTO balances(card_id, amount) VALUES(?, ?)",
            (card.id, amount),
        )
        conn.commit()
    finally:
        conn.close()
    logger.info("Card '%s' added as %s", card.name, card.id)
    return card


def edit_card(card: Card) -> Card:
    """Replace the stored details of an existing card."""
    card = _normalize_card(card)
    conn = get_connection()
    try:
        get_card_row(conn, card.id)
        _write_card(conn, card)
        conn.commit()
    finally:
        conn.close()
    return card


def get_card_row(conn, card_id: str):
    """Return the card row for the given id."""
    cur = conn.execute("SELECT * FROM cards WHERE id=?", (card_id,))
    row = cur.fetchone()
    if row:
        return row
    raise ValueError(f"Card '{card_id}' not found")


def get_card(card_id: str) -> Card:
    conn = get_connection()
    try:
        return _card_from_row(get_card_row(conn, card_id))
    finally:
        conn.close()


def get_cards() -> list[Card]:
    """Return all cards in the order they were added."""
    conn = get_connection()
    cur = conn.execute("SELECT * FROM cards ORDER BY rowid")
    cards = [_card_from_row(r) for r in cur.fetchall()]
    conn.close()
    return cards


def cards_by_id() -> dict[str, Card]:
    return {c.id: c for c in get_cards()}


def find_card_by_name(name: str, cards: Iterable[Card]) -> Card | None:
    wanted = name.strip().lower()
    for card in cards:
        if card.name and card.name.lower() == wanted:
            return card
    return None


def delete_card(card_id: str) -> bool:
    """Remove a card and its balance. Movements keep their card id."""
    conn = get_connection()
    cur = conn.execute("DELETE FROM cards WHERE id=?", (card_id,))
    conn.execute("DELETE FROM balances WHERE card_id=?", (card_id,))
    conn.commit()
    conn.close()
    return bool(cur.rowcount)


def set_initial_balance(card_id: str, amount: float) -> float:
    """Store the starting funds or debt of a card as a positive amount."""
    amount = abs(amount)
    conn = get_connection()
    try:
        get_card_row(conn, card_id)
        conn.execute(
            "INSERT INTO balances(card_id, amount) VALUES(?, ?) "
            "ON CONFLICT(card_id) DO UPDATE SET amount=excluded.amount",
            (card_id, amount),
        )
        conn.commit()
    finally:
        conn.close()
    return amount


def get_initial_balances() -> dict[str, float]:
    conn = get_connection()
    cur = conn.execute("SELECT card_id, amount FROM balances ORDER BY rowid")
    balances = {r["card_id"]: r["amount"] for r in cur.fetchall()}
    conn.close()
    return balances


def _next_expense_id(conn, stamp: int | None = None) -> int:
    stamp = now_ms() if stamp is None else stamp
    row = conn.execute("SELECT MAX(id) FROM expenses").fetchone()
    highest = row[0] or 0
    return max(stamp, highest + 1)


def build_expense(
    description: str,
    amount: float,
    kind: str = "expense",
    payment_method: str = "Cash",
    card_id: str | None = None,
    installments: int = 0,
    date_str: str | None = None,
    cards: dict[str, Card] | None = None,
    expense_id: int = 0,
) -> Expense:
    """Apply the movement form rules and return an unsaved movement."""
    if kind not in ("expense", "income"):
        raise ValueError(f"Unknown movement type '{kind}'")
    if not description or not description.strip():
        raise ValueError("Description is required")
    payment_method = normalize_method(payment_method)
    if payment_method not in PAYMENT_METHODS:
        raise ValueError(f"Unknown payment method '{payment_method}'")
    if cards is None:
        cards = cards_by_id()
    amount = abs(amount) if kind == "income" else -abs(amount)
    if payment_method == "Card":
        if not card_id:
            raise ValueError("A card is required for card payments")
        if card_id not in cards:
            raise ValueError(f"Card '{card_id}' not found")
    else:
        card_id = None
    card = cards.get(card_id) if card_id else None
    if not (card and card.is_credit):
        installments = 0
    return Expense(
        id=expense_id,
        description=description.strip(),
        amount=amount,
        date=check_date(date_str) if date_str else date.today().isoformat(),
        payment_method=payment_method,
        card_id=card_id,
        installments=int(installments or 0),
    )


def _insert_expense(conn, expense: Expense) -> None:
    conn.execute(
        (
            "INSERT INTO expenses(id, description, amount, currency, payment_method, "
            "card_id, installments, date) VALUES(?,?,?,?,?,?,?,?)"
        ),
        (
            expense.id,
            expense.description,
            expense.amount,
            expense.currency,
            expense.payment_method,
            expense.card_id,
            expense.installments,
            expense.date,
        ),
    )


def add_expense(expense: Expense) -> Expense:
    """Store a new movement, assigning a timestamp id."""
    conn = get_connection()
    try:
        expense.id = _next_expense_id(conn)
        _insert_expense(conn, expense)
        conn.commit()
    finally:
        conn.close()
    logger.info(
        "Movement %s of %s recorded", expense.description, fmt(expense.amount)
    )
    return expense


def add_expenses(expenses: Iterable[Expense]) -> int:
    """Store several movements, keeping their ids unique."""
    conn = get_connection()
    count = 0
    try:
        for e in expenses:
            taken = conn.execute("SELECT 1 FROM expenses WHERE id=?", (e.id,)).fetchone()
            if not e.id or taken:
                e.id = _next_expense_id(conn, e.id or None)
            _insert_expense(conn, e)
            count += 1
        conn.commit()
    finally:
        conn.close()
    return count


def update_expense(expense: Expense) -> Expense:
    """Replace an existing movement."""
    conn = get_connection()
    try:
        cur = conn.execute(
            (
                "UPDATE expenses SET description=?, amount=?, currency=?, "
                "payment_method=?, card_id=?, installments=?, date=? WHERE id=?"
            ),
            (
                expense.description,
                expense.amount,
                expense.currency,
                expense.payment_method,
                expense.card_id,
                expense.installments,
                expense.date,
                expense.id,
            ),
        )
        if not cur.rowcount:
            raise ValueError(f"Movement {expense.id} not found")
        conn.commit()
    finally:
        conn.close()
    return expense


def get_expense(expense_id: int) -> Expense:
    conn = get_connection()
    try:
        row = conn.execute("SELECT * FROM expenses WHERE id=?", (expense_id,)).fetchone()
    finally:
        conn.close()
    if row is None:
        raise ValueError(f"Movement {expense_id} not found")
    return _expense_from_row(row)


def get_expenses() -> list[Expense]:
    """Return all movements in the order they were recorded."""
    conn = get_connection()
    cur = conn.execute("SELECT * FROM expenses ORDER BY id")
    rows = [_expense_from_row(r) for r in cur.fetchall()]
    conn.close()
    return rows


def delete_expense(expense_id: int) -> bool:
    conn = get_connection()
    cur = conn.execute("DELETE FROM expenses WHERE id=?", (expense_id,))
    conn.commit()
    conn.close()
    return bool(cur.rowcount)


def delete_expenses(ids: Iterable[int]) -> int:
    """Delete several movements and return how many were removed."""
    ids = list(ids)
    if not ids:
        return 0
    conn = get_connection()
    marks = ",".join("?" for _ in ids)
    cur = conn.execute(f"DELETE FROM expenses WHERE id IN ({marks})", ids)
    conn.commit()
    conn.close()
    return cur.rowcount


def record_payment(card_id: str, amount: float, date_str: str | None = None) -> Expense:
    """Record a payment made to a card. Payments are positive."""
    get_card(card_id)
    payment = Expense(
        id=0,
        description=PAYMENT_DESCRIPTION,
        amount=abs(amount),
        date=check_date(date_str) if date_str else date.today().isoformat(),
        payment_method="Card",
        card_id=card_id,
        installments=0,
    )
    return add_expense(payment)


def replace_all(
    expenses: list[Expense] | None = None,
    balances: dict[str, float] | None = None,
    cards: list[Card] | None = None,
) -> None:
    """Overwrite the stored movements, balances and cards that are given."""
    conn = get_connection()
    try:
        if cards is not None:
            conn.execute("DELETE FROM cards")
            for c in cards:
                _write_card(conn, _normalize_card(c))
        if balances is not None:
            conn.execute("DELETE FROM balances")
            conn.executemany(
                "INSERT INTO balances(card_id, amount) VALUES(?, ?)",
                [(k, abs(v)) for k, v in balances.items()],
            )
        if expenses is not None:
            conn.execute("DELETE FROM expenses")
            seen: set[int] = set()
            for e in expenses:
                if e.id in seen:
                    continue
                seen.add(e.id)
                _insert_expense(conn, e)
        conn.commit()
    finally:
        conn.close()


def reset_data() -> None:
    """Delete every movement and zero the balance of each current card."""
    conn = get_connection()
    conn.execute("DELETE FROM expenses")
    conn.execute("DELETE FROM balances")
    conn.executemany(
        "INSERT INTO balances(card_id, amount) VALUES(?, 0)",
        [(r[0],) for r in conn.execute("SELECT id FROM cards ORDER BY rowid")],
    )
    conn.commit()
    conn.close()
    logger.info("All movements deleted and balances reset")


def card_movements(card: Card, expenses: Iterable[Expense]) -> list[Expense]:
    """Return the card-paid movements that belong to the card."""
    return [
        e for e in expenses if e.payment_method == "Card" and e.card_id == card.id
    ]


def card_summary(
    card: Card, initial: float, movements: Iterable[Expense]
) -> CardSummary:
    """Return the balance of a debit card or the debt of a credit card."""
    movements = list(movements)
    summary = CardSummary(card=card, initial=initial, movements=movements)
    if not card.is_credit:
        summary.balance = initial + sum(e.amount for e in movements)
        return summary
    for e in movements:
        if e.amount < 0:
            amt = abs(e.amount)
            summary.spent += amt
            if e.installments and e.installments > 0:
                summary.monthly_due += amt / e.installments
            else:
                summary.monthly_due += amt
        elif e.amount > 0:
            summary.paid += e.amount
    summary.debt = initial + summary.spent - summary.paid
    summary.balance = -summary.debt
    return summary


def account_summaries(
    cards: list[Card] | None = None,
    expenses: list[Expense] | None = None,
    balances: dict[str, float] | None = None,
) -> list[CardSummary]:
    cards = get_cards() if cards is None else cards
    expenses = get_expenses() if expenses is None else expenses
    balances = get_initial_balances() if balances is None else balances
    return [
        card_summary(c, balances.get(c.id, 0.0), card_movements(c, expenses))
        for c in cards
    ]


def filter_expenses(
    expenses: Iterable[Expense],
    month: str = "all",
    card_id: str = "all",
) -> list[Expense]:
    """Filter movements by YYYY-MM month and card, newest first."""
    result = [
        e
        for e in expenses
        if (month == "all" or e.date.startswith(month))
        and (card_id == "all" or e.card_id == card_id)
    ]
    result.sort(key=lambda e: e.date, reverse=True)
    return result


def month_options(today: date | None = None, count: int = 12) -> list[tuple[str, str]]:
    """Return (YYYY-MM, label) pairs for the last ``count`` months."""
    today = today or date.today()
    options: list[tuple[str, str]] = []
    year, month = today.year, today.month
    for _ in range(count):
        options.append((f"{year:04d}-{month:02d}", f"{calendar.month_name[month]} {year}"))
        month -= 1
        if month == 0:
            month = 12
            year -= 1
    return options


def get_theme() -> str:
    conn = get_connection()
    row = conn.execute("SELECT value FROM settings WHERE key='theme'").fetchone()
    conn.close()
    if row and row[0] in THEMES:
        return row[0]
    return "light"


def set_theme(theme: str) -> str:
    if theme not in THEMES:
        raise ValueError(f"Unknown theme '{theme}'")
    conn = get_connection()
    conn.execute(
        "INSERT INTO settings(key, value) VALUES('theme', ?) "
        "ON CONFLICT(key) DO UPDATE SET value=excluded.value",
        (theme,),
    )
    conn.commit()
    conn.close()
    return theme


def toggle_theme() -> str:
    return set_theme("light" if get_theme() == "dark" else "dark")


def login_user(id_token: str) -> str | None:
    """Verify a Firebase ID token and return the user's uid."""
    try:
        info = auth.verify_id_token(id_token)
    except Exception as e:
        logger.warning("Login failed: %s", e)
        return None
    uid = info.get("uid")
    if uid:
        logger.info("Logged in as %s", info.get("email", uid))
    return uid


def _parse_date(value: str) -> str:
    return datetime.strptime(value, "%Y-%m-%d").date().isoformat()


def print_cards() -> None:
    """Print all accounts with their balance or debt."""
    summaries = account_summaries()
    print("Accounts:")
    for s in summaries:
        c = s.card
        if c.is_credit:
            extra = ""
            if c.cutoff_day:
                extra = f", cutoff day {c.cutoff_day}, grace {c.grace_period or 0} days"
            print(
                f"- {c.name} [{c.id}] (credit): debt {format_money(s.debt)} "
                f"(monthly due {format_money(s.monthly_due)}{extra})"
            )
        else:
            print(f"- {c.name} [{c.id}] (debit): balance {format_money(s.balance)}")
    if not summaries:
        print("(none)")


def print_history(month: str, card_id: str, limit: int) -> None:
    """Display recent movements, optionally filtered by month and card."""
    cards = cards_by_id()
    rows = filter_expenses(get_expenses(), month, card_id)[:limit]
    for e in rows:
        card = cards.get(e.card_id).name if e.card_id in cards else ""
        msi = f" | {e.installments} months" if e.installments else ""
        print(
            f"{e.id} | {e.date} | {e.description} | {fmt(e.amount)} | "
            f"{e.payment_method} | {card}{msi}"
        )
    if not rows:
        print("(no movements)")


def print_alerts(today: date | None = None) -> None:
    import alerts

    found = alerts.payment_alerts(
        get_cards(), get_expenses(), get_initial_balances(), today
    )
    if not found:
        print("No upcoming payments.")
        return
    for a in found:
        print(
            f"{a.card.name}: pay {format_money(a.statement_balance)} by "
            f"{a.due_date.isoformat()} ({a.status}); cutoff {a.cutoff_date.isoformat()}, "
            f"total debt {format_money(a.current_debt)}"
        )
        if a.estimated_interest > 0:
            print(f"  Interest risk: ~{format_money(a.estimated_interest)}")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse and return command line arguments."""
    parser = argparse.ArgumentParser(description="Finance Tracker")
    parser.add_argument("--db", default=None, help="Path to database file")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("init", help="Initialize the database")

    parser_card = subparsers.add_parser("add-card", help="Add an account or card")
    parser_card.add_argument("name")
    parser_card.add_argument("--type", choices=CARD_TYPES, default="debit")
    parser_card.add_argument("--color", default=DEFAULT_COLOR)
    parser_card.add_argument("--balance", type=float, default=None, help="Starting funds or debt")
    parser_card.add_argument("--cutoff-day", type=int, default=None)
    parser_card.add_argument("--grace", type=int, default=None, help="Days after cutoff to pay")
    parser_card.add_argument(
        "--cutoff-date", type=_parse_date, default=None, help="Statement cutoff date"
    )
    parser_card.add_argument(
        "--payment-date", type=_parse_date, default=None, help="Statement payment date"
    )
    parser_card.add_argument("--rate", type=float, default=None, help="Annual interest percent")

    subparsers.add_parser("list-cards", help="List accounts and balances")

    parser_del_card = subparsers.add_parser("delete-card", help="Delete an account")
    parser_del_card.add_argument("card_id")

    parser_bal = subparsers.add_parser("set-balance", help="Set starting funds or debt")
    parser_bal.add_argument("card_id")
    parser_bal.add_argument("amount", type=float)

    for kind in ("expense", "income"):
        p = subparsers.add_parser(f"add-{kind}", help=f"Add {kind} entry")
        p.add_argument("description")
        p.add_argument("amount", type=float)
        p.add_argument("--method", choices=PAYMENT_METHODS, default="Cash")
        p.add_argument("--card", default=None, help="Card id for card payments")
        p.add_argument("--installments", type=int, default=0)
        p.add_argument("--date", type=_parse_date, default=None)

    parser_pay = subparsers.add_parser("pay", help="Record a card payment")
    parser_pay.add_argument("card_id")
    parser_pay.add_argument("amount", type=float)
    parser_pay.add_argument("--date", type=_parse_date, default=None)

    parser_hist = subparsers.add_parser("history", help="Show recent movements")
    parser_hist.add_argument("--month", default="all", help="YYYY-MM or all")
    parser_hist.add_argument("--card", default="all")
    parser_hist.add_argument("--limit", type=int, default=20)

    parser_del = subparsers.add_parser("delete-expense", help="Delete movements")
    parser_del.add_argument("ids", type=int, nargs="+")

    subparsers.add_parser("summary", help="Show account summaries")

    parser_alerts = subparsers.add_parser("alerts", help="Show upcoming card payments")
    parser_alerts.add_argument("--today", type=_parse_date, default=None)

    parser_backup = subparsers.add_parser("backup", help="Write a JSON backup")
    parser_backup.add_argument("--output", default=None)

    parser_restore = subparsers.add_parser("restore", help="Restore a JSON backup")
    parser_restore.add_argument("path")

    parser_import = subparsers.add_parser("import", help="Import a spreadsheet")
    parser_import.add_argument("path")
    parser_import.add_argument("--card", default=None, help="Assign every row to this card")

    parser_report = subparsers.add_parser("report", help="Write a CSV report")
    parser_report.add_argument("--output", default=None)

    subparsers.add_parser("reset", help="Delete all movements and zero balances")

    parser_theme = subparsers.add_parser("theme", help="Show or set the theme")
    parser_theme.add_argument("value", nargs="?", choices=THEMES + ("toggle",))

    return parser.parse_args(argv)


def run_command(args: argparse.Namespace) -> None:
    import backup
    import importer

    today = date.today()
    if args.command == "add-card":
        cutoff_day, grace = args.cutoff_day, args.grace
        if args.cutoff_date:
            cutoff_day, derived = cycle_from_dates(
                date.fromisoformat(args.cutoff_date),
                date.fromisoformat(args.payment_date) if args.payment_date else None,
            )
            grace = derived if derived is not None else grace
        card = add_card(
            args.name,
            args.type,
            args.color,
            cutoff_day,
            grace,
            args.rate,
            args.balance,
        )
        print(f"Card '{card.name}' added with id {card.id}.")
    elif args.command == "list-cards":
        print_cards()
    elif args.command == "delete-card":
        if delete_card(args.card_id):
            print(f"Card '{args.card_id}' deleted.")
        else:
            print(f"Card '{args.card_id}' not found.")
    elif args.command == "set-balance":
        amount = set_initial_balance(args.card_id, args.amount)
        print(f"Starting balance of '{args.card_id}' set to {fmt(amount)}.")
    elif args.command in ("add-expense", "add-income"):
        kind = args.command.split("-", 1)[1]
        method = "Card" if args.card else args.method
        expense = add_expense(
            build_expense(
                args.description,
                args.amount,
                kind,
                method,
                args.card,
                args.installments,
                args.date,
            )
        )
        print(f"{kind.title()} of {fmt(abs(expense.amount))} recorded ({expense.id}).")
    elif args.command == "pay":
        payment = record_payment(args.card_id, args.amount, args.date)
        print(f"Payment of {fmt(payment.amount)} recorded for {args.card_id}.")
    elif args.command == "history":
        print_history(args.month, args.card, args.limit)
    elif args.command == "delete-expense":
        count = delete_expenses(args.ids)
        print(f"Deleted {count} movements.")
    elif args.command == "summary":
        print_cards()
    elif args.command == "alerts":
        print_alerts(date.fromisoformat(args.today) if args.today else None)
    elif args.command == "backup":
        output = args.output or backup.backup_filename(today)
        Path(output).write_text(backup.export_backup(), encoding="utf-8")
        print(f"Backup written to {output}")
    elif args.command == "restore":
        text = Path(args.path).read_text(encoding="utf-8")
        counts = backup.restore_backup(text)
        print(f"Restored {counts['expenses']} movements and {counts['balances']} balances.")
    elif args.command == "import":
        cards = get_cards()
        with open(args.path, "rb") as f:
            rows = importer.read_spreadsheet(f, args.path)
        preview = importer.preview_rows(importer.parse_rows(rows, cards, today), today)
        if args.card:
            get_card(args.card)
            preview = importer.apply_card(preview, args.card)
        count = add_expenses(importer.confirm_rows(preview, {c.id: c for c in cards}))
        print(f"Imported {count} movements from {args.path}")
    elif args.command == "report":
        output = args.output or backup.report_filename(today)
        with open(output, "w", newline="", encoding="utf-8") as f:
            f.write(backup.csv_report(get_expenses(), cards_by_id()))
        print(f"Report written to {output}")
    elif args.command == "reset":
        reset_data()
        print("All movements deleted and balances reset.")
    elif args.command == "theme":
        if args.value == "toggle":
            theme = toggle_theme()
        elif args.value:
            theme = set_theme(args.value)
        else:
            theme = get_theme()
        print(f"Theme: {theme}")
    else:
        print("No command provided. Use -h for help.")


def main(argv: list[str] | None = None) -> None:
    """Entry point for the command line interface."""
    global DB_FILE
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "WARNING"))
    args = parse_args(argv)
    if args.db:
        DB_FILE = Path(args.db)
    init_db()
    if args.command == "init":
        print(f"Database initialized at {DB_FILE}")
        return
    try:
        run_command(args)
    except ValueError as e:
        print(e)
        sys.exit(1)


if __name__ == "__main__":
    # Run through the importable module so backup and importer share its DB_FILE.
    import finance_tracker

    finance_tracker.main()
