import sys
from datetime import date
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import alerts
from finance_tracker import Card, Expense


def gold(**kwargs):
    data = dict(
        id="gold",
        name="Gold",
        type="credit",
        cutoff_day=10,
        grace_period=20,
        interest_rate=36,
    )
    data.update(kwargs)
    return Card(**data)


MOVEMENTS = [
    Expense(1, "Before cutoff", -1000, "2024-02-05", "Card", "gold"),
    Expense(2, "After cutoff", -500, "2024-02-20", "Card", "gold"),
    Expense(3, "CARD PAYMENT", 300, "2024-02-25", "Card", "gold"),
    Expense(4, "Cash purchase", -999, "2024-02-01", "Cash", "gold"),
]


def test_cutoff_in_month_clamps_day():
    assert alerts.cutoff_in_month(2024, 2, 31) == date(2024, 2, 29)
    assert alerts.cutoff_in_month(2024, 0, 15) == date(2023, 12, 15)
    assert alerts.cutoff_in_month(2024, 13, 15) == date(2025, 1, 15)


def test_target_due_date_keeps_recent_overdue():
    assert alerts.target_due_date(10, 20, date(2024, 3, 5)) == date(2024, 3, 1)
    assert alerts.target_due_date(10, 20, date(2024, 3, 6)) == date(2024, 3, 1)
    assert alerts.target_due_date(10, 20, date(2024, 3, 7)) == date(2024, 3, 30)


def test_overdue_alert_with_statement_balance():
    alert = alerts.card_alert(gold(), MOVEMENTS, 200, date(2024, 3, 5))
    assert alert.due_date == date(2024, 3, 1)
    assert alert.cutoff_date == date(2024, 2, 10)
    assert alert.days_left == -4
    assert alert.status == "Overdue by 4 days"
    assert alert.urgent
    assert alert.statement_balance == 900
    assert alert.current_debt == 1400
    assert alert.estimated_interest == pytest.approx(900 * 0.03 * 1.16)


def test_no_alert_outside_window():
    assert alerts.card_alert(gold(), MOVEMENTS, 200, date(2024, 3, 7)) is None


def test_alert_within_window():
    alert = alerts.card_alert(gold(), MOVEMENTS, 200, date(2024, 3, 15))
    assert alert.due_date == date(2024, 3, 30)
    assert alert.cutoff_date == date(2024, 3, 10)
    assert alert.days_left == 15
    assert alert.status == "15 days left"
    assert not alert.urgent
    assert alert.statement_balance == 1400


def test_due_today():
    alert = alerts.card_alert(gold(), MOVEMENTS, 200, date(2024, 3, 30))
    assert alert.days_left == 0
    assert alert.status == "Due today"


def test_paid_statement_has_no_alert():
    movements = MOVEMENTS + [Expense(5, "CARD PAYMENT", 900, "2024-02-26", "Card", "gold")]
    assert alerts.card_alert(gold(), movements, 200, date(2024, 3, 5)) is None


def test_no_interest_without_rate():
    alert = alerts.card_alert(gold(interest_rate=None), MOVEMENTS, 200, date(2024, 3, 5))
    assert alert.estimated_interest == 0


def test_month_end_cutoff():
    card = gold(cutoff_day=31, grace_period=10)
    expenses = [Expense(1, "Rent", -100, "2024-02-10", "Card", "gold")]
    alert = alerts.card_alert(card, expenses, 0, date(2024, 2, 20))
    assert alert.cutoff_date == date(2024, 2, 29)
    assert alert.due_date == date(2024, 3, 10)


def test_payment_alerts_skips_debit_and_unconfigured():
    cards = [
        gold(),
        Card(id="chk", name="Checking"),
        gold(id="plain", name="Plain", cutoff_day=None, grace_period=None),
    ]
    balances = {"gold": 200, "chk": 1000, "plain": 5000}
    found = alerts.payment_alerts(cards, MOVEMENTS, balances, date(2024, 3, 5))
    assert [a.card.id for a in found] == ["gold"]
    assert found[0].to_dict()["due_date"] == "2024-03-01"
