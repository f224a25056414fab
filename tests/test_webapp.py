import io
import json
import re
import sys
from datetime import date
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import cloud_sync
import finance_tracker
import webapp


def setup_app(tmp_path):
    finance_tracker.DB_FILE = tmp_path / "finance.db"
    webapp.setup_db()
    return webapp.app.test_client()


def get_csrf(client, path="/"):
    resp = client.get(path)
    match = re.search(r'name="csrf_token" value="([^"]+)"', resp.get_data(as_text=True))
    return match.group(1) if match else None


def login(client, monkeypatch):
    monkeypatch.setattr(finance_tracker, "login_user", lambda t: "tester")
    token = get_csrf(client, "/login")
    client.post("/login", data={"token": "x", "csrf_token": token})


def post(client, path, data=None, **kwargs):
    data = dict(data or {})
    data["csrf_token"] = get_csrf(client)
    return client.post(path, data=data, **kwargs)


def test_dashboard_renders(tmp_path):
    client = setup_app(tmp_path)
    resp = client.get("/")
    assert resp.status_code == 200
    html = resp.get_data(as_text=True)
    assert 'id="accounts"' in html
    assert 'id="movements"' in html


def test_post_without_csrf_is_rejected(tmp_path):
    client = setup_app(tmp_path)
    resp = client.post("/cards/add", data={"name": "Wallet"})
    assert resp.status_code == 400
    assert finance_tracker.get_cards() == []


def test_add_card_with_statement_dates(tmp_path):
    client = setup_app(tmp_path)
    post(
        client,
        "/cards/add",
        {
            "name": "Gold",
            "type": "credit",
            "initial_balance": "-500",
            "cutoff_date": "2024-03-10",
            "payment_date": "2024-03-30",
            "interest_rate": "36",
        },
    )
    cards = finance_tracker.get_cards()
    assert len(cards) == 1
    assert cards[0].cutoff_day == 10
    assert cards[0].grace_period == 20
    assert cards[0].interest_rate == 36
    assert finance_tracker.get_initial_balances()[cards[0].id] == 500
    assert "Gold" in client.get("/").get_data(as_text=True)


def test_edit_and_delete_card(tmp_path):
    client = setup_app(tmp_path)
    card = finance_tracker.add_card("Wallet")
    post(client, f"/cards/{card.id}/edit", {"name": "Pocket", "initial_balance": "75"})
    assert finance_tracker.get_card(card.id).name == "Pocket"
    assert finance_tracker.get_initial_balances()[card.id] == 75
    post(client, f"/cards/{card.id}/balance", {"amount": "-20"})
    assert finance_tracker.get_initial_balances()[card.id] == 20
    post(client, f"/cards/{card.id}/delete")
    assert finance_tracker.get_cards() == []


def test_add_edit_delete_expense(tmp_path):
    client = setup_app(tmp_path)
    card = finance_tracker.add_card("Gold", "credit")
    today = date.today().isoformat()
    post(
        client,
        "/expenses/add",
        {
            "description": "Phone",
            "amount": "1200",
            "type": "expense",
            "payment_method": "Card",
            "card_id": card.id,
            "installments": "12",
            "date": today,
        },
    )
    expenses = finance_tracker.get_expenses()
    assert len(expenses) == 1
    assert expenses[0].amount == -1200
    assert expenses[0].installments == 12
    assert "Phone" in client.get("/").get_data(as_text=True)

    expense_id = expenses[0].id
    page = client.get(f"/?edit={expense_id}").get_data(as_text=True)
    assert f"/expenses/{expense_id}/edit" in page
    post(
        client,
        f"/expenses/{expense_id}/edit",
        {"description": "Phone case", "amount": "30", "type": "expense", "date": today},
    )
    updated = finance_tracker.get_expense(expense_id)
    assert updated.description == "Phone case"
    assert updated.payment_method == "Cash"
    assert updated.card_id is None

    post(client, f"/expenses/{expense_id}/delete")
    assert finance_tracker.get_expenses() == []


def test_card_expense_without_card_is_flashed(tmp_path):
    client = setup_app(tmp_path)
    resp = post(
        client,
        "/expenses/add",
        {"description": "Fuel", "amount": "40", "payment_method": "Card"},
        follow_redirects=True,
    )
    assert "A card is required" in resp.get_data(as_text=True)
    assert finance_tracker.get_expenses() == []


def test_bulk_delete(tmp_path):
    client = setup_app(tmp_path)
    ids = [
        finance_tracker.add_expense(finance_tracker.build_expense(name, 5)).id
        for name in ("A", "B", "C")
    ]
    post(client, "/expenses/delete", {"delete": [str(ids[0]), str(ids[2])]})
    assert [e.id for e in finance_tracker.get_expenses()] == [ids[1]]


def test_pay_card(tmp_path):
    client = setup_app(tmp_path)
    card = finance_tracker.add_card("Gold", "credit", initial_balance=300)
    post(client, f"/cards/{card.id}/pay", {"amount": "100"})
    summary = finance_tracker.account_summaries()[0]
    assert summary.debt == 200


def test_reset(tmp_path):
    client = setup_app(tmp_path)
    card = finance_tracker.add_card("Wallet", initial_balance=90)
    finance_tracker.add_expense(finance_tracker.build_expense("A", 5))
    post(client, "/reset")
    assert finance_tracker.get_expenses() == []
    assert finance_tracker.get_initial_balances() == {card.id: 0}


def test_toggle_theme(tmp_path):
    client = setup_app(tmp_path)
    post(client, "/toggle-theme")
    assert finance_tracker.get_theme() == "dark"
    assert 'data-bs-theme="dark"' in client.get("/").get_data(as_text=True)


def test_backup_restore_and_report(tmp_path):
    client = setup_app(tmp_path)
    card = finance_tracker.add_card("Wallet", initial_balance=10)
    finance_tracker.add_expense(finance_tracker.build_expense("Lunch", 12, date_str="2024-01-03"))

    resp = client.get("/backup")
    assert "attachment; filename=finance_backup_" in resp.headers["Content-Disposition"]
    payload = resp.get_data()
    assert json.loads(payload)["initialBalances"] == {card.id: 10}

    report = client.get("/report")
    assert report.mimetype == "text/csv"
    assert '"Lunch"' in report.get_data(as_text=True)

    finance_tracker.reset_data()
    post(
        client,
        "/restore",
        {"backup": (io.BytesIO(payload), "backup.json")},
        content_type="multipart/form-data",
    )
    assert [e.description for e in finance_tracker.get_expenses()] == ["Lunch"]


def test_restore_rejects_bad_file(tmp_path):
    client = setup_app(tmp_path)
    resp = post(
        client,
        "/restore",
        {"backup": (io.BytesIO(b'{"foo": 1}'), "backup.json")},
        content_type="multipart/form-data",
        follow_redirects=True,
    )
    assert "expected backup format" in resp.get_data(as_text=True)


def test_import_preview_and_confirm(tmp_path):
    client = setup_app(tmp_path)
    card = finance_tracker.add_card("Gold", "credit")
    csv_data = b"Date,Description,Amount,Type,Card\n05/01/2024,Lunch,120,Cargo,gold\n"
    resp = post(
        client,
        "/import",
        {"spreadsheet": (io.BytesIO(csv_data), "bank.csv")},
        content_type="multipart/form-data",
    )
    html = resp.get_data(as_text=True)
    assert "1 movements detected" in html
    assert 'value="2024-01-05"' in html

    form = {
        "date_0": "2024-01-05",
        "description_0": "Lunch",
        "amount_0": "120",
        "type_0": "expense",
        "card_0": card.id,
        "installments_0": "3",
        "date_1": "2024-01-06",
        "description_1": "Dropped",
        "amount_1": "5",
        "type_1": "expense",
        "card_1": "",
        "remove_1": "on",
        "action": "confirm",
    }
    post(client, "/import/confirm", form)
    expenses = finance_tracker.get_expenses()
    assert len(expenses) == 1
    assert expenses[0].amount == -120
    assert expenses[0].card_id == card.id
    assert expenses[0].installments == 3


def test_import_apply_card(tmp_path):
    client = setup_app(tmp_path)
    card = finance_tracker.add_card("Checking")
    form = {
        "date_0": "2024-01-05",
        "description_0": "Lunch",
        "amount_0": "120",
        "type_0": "expense",
        "card_0": "",
        "global_card": card.id,
        "action": "apply",
    }
    html = post(client, "/import/confirm", form).get_data(as_text=True)
    assert f'value="{card.id}" selected' in html
    assert finance_tracker.get_expenses() == []


def test_import_unsupported_file(tmp_path):
    client = setup_app(tmp_path)
    resp = post(
        client,
        "/import",
        {"spreadsheet": (io.BytesIO(b""), "old.xls")},
        content_type="multipart/form-data",
        follow_redirects=True,
    )
    assert "Unsupported file type" in resp.get_data(as_text=True)


def test_login_and_logout(tmp_path, monkeypatch):
    client = setup_app(tmp_path)
    login(client, monkeypatch)
    with client.session_transaction() as sess:
        assert sess["uid"] == "tester"
    client.get("/logout")
    with client.session_transaction() as sess:
        assert "uid" not in sess


def test_login_failure(tmp_path, monkeypatch):
    client = setup_app(tmp_path)
    monkeypatch.setattr(finance_tracker, "login_user", lambda t: None)
    token = get_csrf(client, "/login")
    resp = client.post("/login", data={"token": "bad", "csrf_token": token})
    assert "Login failed" in resp.get_data(as_text=True)


def test_require_login_when_enabled(tmp_path, monkeypatch):
    client = setup_app(tmp_path)
    monkeypatch.setattr(webapp, "AUTH_ENABLED", True)
    resp = client.get("/")
    assert resp.status_code == 302
    assert "/login" in resp.headers["Location"]
    login(client, monkeypatch)
    assert client.get("/").status_code == 200


def test_sync_requires_cloud_user(tmp_path, monkeypatch):
    client = setup_app(tmp_path)
    called = []
    monkeypatch.setattr(cloud_sync, "push", lambda uid: called.append(uid) or True)
    resp = post(client, "/sync/push")
    assert "/login" in resp.headers["Location"]
    assert called == []


def test_sync_push_and_pull(tmp_path, monkeypatch):
    client = setup_app(tmp_path)
    login(client, monkeypatch)
    pushed = []
    monkeypatch.setattr(cloud_sync, "push", lambda uid: pushed.append(uid) or True)
    monkeypatch.setattr(
        cloud_sync,
        "pull",
        lambda uid: {
            "expenses": [{"id": 5, "description": "Cloud", "amount": -3, "date": "2024-01-01"}],
            "balances": {},
            "cards": {},
            "theme": "dark",
        },
    )
    post(client, "/sync/push")
    assert pushed == ["tester"]
    post(client, "/sync/pull")
    assert [e.description for e in finance_tracker.get_expenses()] == ["Cloud"]
    assert finance_tracker.get_theme() == "dark"


def test_sync_pull_failure_is_flashed(tmp_path, monkeypatch):
    client = setup_app(tmp_path)
    login(client, monkeypatch)

    def boom(uid):
        raise RuntimeError("offline")

    monkeypatch.setattr(cloud_sync, "pull", boom)
    resp = post(client, "/sync/pull", follow_redirects=True)
    assert "Error loading data from the cloud" in resp.get_data(as_text=True)


def test_restore_with_invalid_card_skips_it(tmp_path):
    client = setup_app(tmp_path)
    payload = json.dumps(
        {
            "expenses": [],
            "initialBalances": {},
            "cards": {"bad": {"id": "bad", "name": "Bad", "type": "credit", "cutoffDay": 0}},
        }
    ).encode()
    resp = post(
        client,
        "/restore",
        {"backup": (io.BytesIO(payload), "backup.json")},
        content_type="multipart/form-data",
    )
    assert resp.status_code == 302
    assert finance_tracker.get_cards() == []


def test_sync_pull_with_invalid_card(tmp_path, monkeypatch):
    client = setup_app(tmp_path)
    login(client, monkeypatch)
    monkeypatch.setattr(
        cloud_sync, "pull", lambda uid: {"cards": {"a": {"name": "Bad", "type": "visa"}}}
    )
    resp = post(client, "/sync/pull")
    assert resp.status_code == 302
    assert finance_tracker.get_cards() == []


def test_bulk_delete_ignores_non_numeric_ids(tmp_path):
    client = setup_app(tmp_path)
    expense = finance_tracker.add_expense(finance_tracker.build_expense("A", 5))
    resp = post(client, "/expenses/delete", {"delete": ["abc", str(expense.id)]})
    assert resp.status_code == 302
    assert finance_tracker.get_expenses() == []


def test_import_preview_flashes_bad_dates(tmp_path):
    client = setup_app(tmp_path)
    csv_data = b"Date,Description,Amount\n5/1/24,Lunch,120\n2024-31-01,Dinner,80\n"
    resp = post(
        client,
        "/import",
        {"spreadsheet": (io.BytesIO(csv_data), "bank.csv")},
        content_type="multipart/form-data",
    )
    html = resp.get_data(as_text=True)
    assert 'value="2024-01-05"' in html
    assert "Row 2: Invalid date" in html
    assert "Row 1:" not in html
