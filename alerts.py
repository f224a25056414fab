"""Upcoming credit card payment alerts.

A card's statement closes on its cutoff day and must be paid within the
grace period that follows. Given today's date, the alert looks at the due
dates produced by last month's, this month's and next month's cutoff, picks
the one the user should be paying now, and works out how much must be paid
to avoid interest (the statement balance).
"""

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable

from finance_tracker import Card, Expense, card_movements

ALERT_WINDOW_DAYS = 20
OVERDUE_DAYS = 5
# Interest is charged plus 16% value-added tax.
INTEREST_TAX = 1.16


@dataclass
class PaymentAlert:
    card: Card
    days_left: int
    due_date: date
    cutoff_date: date
    statement_balance: float
    current_debt: float
    estimated_interest: float

    @property
    def urgent(self) -> bool:
        return self.days_left <= 3

    @property
    def status(self) -> str:
        if self.days_left == 0:
            return "Due today"
        if self.days_left < 0:
            return f"Overdue by {-self.days_left} days"
        return f"{self.days_left} days left"

    def to_dict(self) -> dict:
        return {
            "card_id": self.card.id,
            "card_name": self.card.name,
            "days_left": self.days_left,
            "due_date": self.due_date.isoformat(),
            "cutoff_date": self.cutoff_date.isoformat(),
            "statement_balance": self.statement_balance,
            "current_debt": self.current_debt,
            "estimated_interest": self.estimated_interest,
            "status": self.status,
        }


def cutoff_in_month(year: int, month: int, day: int) -> date:
    """Return the cutoff date for a month, clamped to its last day."""
    while month < 1:
        month += 12
        year -= 1
    while month > 12:
        month -= 12
        year += 1
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last))


def target_due_date(cutoff_day: int, grace_period: int, today: date) -> date:
    """Return the due date that is current for ``today``."""
    candidates = sorted(
        cutoff_in_month(today.year, today.month + offset, cutoff_day)
        + timedelta(days=grace_period)
        for offset in (-1, 0, 1)
    )
    for due in candidates:
        if (due - today).days >= -OVERDUE_DAYS:
            return due
    return candidates[-1]


def card_alert(
    card: Card,
    expenses: Iterable[Expense],
    initial_debt: float,
    today: date,
) -> PaymentAlert | None:
    """Return the payment alert for one card, or None when nothing is due."""
    if not card.is_credit or not card.cutoff_day or not card.grace_period:
        return None

    due = target_due_date(card.cutoff_day, card.grace_period, today)
    cutoff = due - timedelta(days=card.grace_period)
    days_left = (due - today).days
    if days_left > ALERT_WINDOW_DAYS:
        return None

    movements = card_movements(card, expenses)
    spent = paid = spent_before_cutoff = 0.0
    for e in movements:
        if e.amount < 0:
            spent += abs(e.amount)
            if date.fromisoformat(e.date[:10]) <= cutoff:
                spent_before_cutoff += abs(e.amount)
        elif e.amount > 0:
            paid += e.amount

    current_debt = initial_debt + spent - paid
    # Purchases after the cutoff belong to the next statement.
    statement_balance = initial_debt + spent_before_cutoff - paid
    if statement_balance <= 0:
        return None

    estimated_interest = 0.0
    if card.interest_rate:
        monthly_rate = card.interest_rate / 100 / 12
        estimated_interest = statement_balance * monthly_rate * INTEREST_TAX

    return PaymentAlert(
        card=card,
        days_left=days_left,
        due_date=due,
        cutoff_date=cutoff,
        statement_balance=statement_balance,
        current_debt=max(current_debt, 0.0),
        estimated_interest=estimated_interest,
    )


def payment_alerts(
    cards: Iterable[Card],
    expenses: Iterable[Expense],
    balances: dict[str, float],
    today: date | None = None,
) -> list[PaymentAlert]:
    """Return alerts for credit cards with a statement due soon."""
    today = today or date.today()
    expenses = list(expenses)
    alerts: list[PaymentAlert] = []
    for card in cards:
        alert = card_alert(card, expenses, balances.get(card.id, 0.0), today)
        if alert is not None:
            alerts.append(alert)
    return alerts
