import io
import logging
import os
from datetime import date
from functools import wraps

from flask import (
    Flask,
    Response,
    flash,
    redirect,
    render_template,
    request,
    session,
    url_for,
)
from flask_wtf.csrf import CSRFProtect

import alerts
import api
import backup
import cloud_sync
import finance_tracker
import importer

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.secret_key = os.environ.get("FLASK_SECRET_KEY", "devkey")
csrf = CSRFProtect(app)
csrf.exempt(api.bp)
app.register_blueprint(api.bp, url_prefix="/api")
AUTH_ENABLED = os.environ.get("AUTH_ENABLED", "0") == "1"


@app.template_filter("fmt")
def fmt_filter(value: float) -> str:
    """Jinja filter to format numbers with commas and two decimals."""
    return finance_tracker.fmt(value)


@app.template_filter("money")
def money_filter(value: float) -> str:
    return finance_tracker.format_money(value)


@app.context_processor
def inject_theme():
    return {"theme": finance_tracker.get_theme(), "cloud_user": session.get("uid")}


def require_login(func):
    """Decorator to ensure a user is logged in."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        if AUTH_ENABLED and not session.get("user"):
            return redirect(url_for("login"))
        return func(*args, **kwargs)

    return wrapper


def require_cloud_user(func):
    """Cloud sync always needs a verified Firebase user."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        if not session.get("uid"):
            flash("Sign in to use cloud sync.", "warning")
            return redirect(url_for("login"))
        return func(*args, **kwargs)

    return wrapper


def setup_db() -> None:
    """Initialize the database tables if they do not exist."""
    finance_tracker.init_db()


def _float(name: str, default: float | None = None) -> float | None:
    return request.form.get(name, type=float, default=default)


def _int(name: str, default: int | None = None) -> int | None:
    return request.form.get(name, type=int, default=default)


def _date_field(name: str) -> date | None:
    value = request.form.get(name)
    if not value:
        return None
    return date.fromisoformat(finance_tracker.check_date(value))


def card_cycle_from_form() -> tuple[int | None, int | None]:
    """Return cutoff day and grace period, preferring statement dates."""
    cutoff_day = _int("cutoff_day")
    grace = _int("grace_period")
    cutoff_date = _date_field("cutoff_date")
    if cutoff_date:
        cutoff_day, derived = finance_tracker.cycle_from_dates(
            cutoff_date, _date_field("payment_date")
        )
        if derived is not None:
            grace = derived
    return cutoff_day, grace


def get_dashboard(month: str, card_filter: str, today: date | None = None) -> dict:
    """Collect everything the dashboard shows."""
    today = today or date.today()
    cards = finance_tracker.get_cards()
    expenses = finance_tracker.get_expenses()
    balances = finance_tracker.get_initial_balances()
    return {
        "cards": cards,
        "card_map": {c.id: c for c in cards},
        "balances": balances,
        "summaries": finance_tracker.account_summaries(cards, expenses, balances),
        "alerts": alerts.payment_alerts(cards, expenses, balances, today),
        "movements": finance_tracker.filter_expenses(expenses, month, card_filter),
        "month": month,
        "card_filter": card_filter,
        "month_options": finance_tracker.month_options(today),
        "today": today.isoformat(),
    }


@app.route("/login", methods=["GET", "POST"])
def login():
    error = None
    if request.method == "POST":
        token = request.form.get("token", "")
        uid = finance_tracker.login_user(token)
        if uid:
            session["user"] = uid
            session["uid"] = uid
            return redirect(url_for("dashboard"))
        error = "Login failed"
    return render_template("login.html", error=error)


@app.route("/logout")
def logout():
    session.pop("user", None)
    session.pop("uid", None)
    return redirect(url_for("login"))


@app.route("/")
@require_login
def dashboard():
    month = request.args.get("month", date.today().strftime("%Y-%m"))
    card_filter = request.args.get("card", "all")
    editing = None
    edit_id = request.args.get("edit", type=int)
    if edit_id:
        try:
            editing = finance_tracker.get_expense(edit_id)
        except ValueError as e:
            flash(str(e), "danger")
    data = get_dashboard(month, card_filter)
    return render_template(
        "dashboard.html",
        editing=editing,
        colors=finance_tracker.PRESET_COLORS,
        methods=finance_tracker.PAYMENT_METHODS,
        installment_options=finance_tracker.INSTALLMENT_OPTIONS,
        **data,
    )


@app.route("/cards/add", methods=["POST"])
@require_login
def add_card_route():
    name = request.form.get("name", "")
    try:
        cutoff_day, grace = card_cycle_from_form()
        card = finance_tracker.add_card(
            name,
            request.form.get("type", "debit"),
            request.form.get("color") or finance_tracker.DEFAULT_COLOR,
            cutoff_day,
            grace,
            _float("interest_rate"),
            _float("initial_balance"),
        )
        flash(f"Account '{card.name}' added.", "success")
    except ValueError as e:
        flash(str(e), "danger")
    return redirect(url_for("dashboard"))


@app.route("/cards/<card_id>/edit", methods=["POST"])
@require_login
def edit_card_route(card_id: str):
    try:
        card = finance_tracker.get_card(card_id)
        cutoff_day, grace = card_cycle_from_form()
        card.name = request.form.get("name") or card.name
        card.color = request.form.get("color") or card.color
        card.type = request.form.get("type") or card.type
        card.cutoff_day = cutoff_day
        card.grace_period = grace
        card.interest_rate = _float("interest_rate")
        finance_tracker.edit_card(card)
        balance = _float("initial_balance")
        if balance is not None:
            finance_tracker.set_initial_balance(card_id, balance)
    except ValueError as e:
        flash(str(e), "danger")
    return redirect(url_for("dashboard"))


@app.route("/cards/<card_id>/delete", methods=["POST"])
@require_login
def delete_card_route(card_id: str):
    finance_tracker.delete_card(card_id)
    return redirect(url_for("dashboard"))


@app.route("/cards/<card_id>/balance", methods=["POST"])
@require_login
def adjust_balance_route(card_id: str):
    amount = _float("amount")
    if amount is None:
        flash("Enter a valid amount.", "danger")
        return redirect(url_for("dashboard"))
    try:
        finance_tracker.set_initial_balance(card_id, amount)
    except ValueError as e:
        flash(str(e), "danger")
    return redirect(url_for("dashboard"))


@app.route("/cards/<card_id>/pay", methods=["POST"])
@require_login
def pay_card_route(card_id: str):
    amount = _float("amount")
    if not amount:
        flash("Enter a valid amount.", "danger")
        return redirect(url_for("dashboard"))
    try:
        finance_tracker.record_payment(card_id, amount, request.form.get("date") or None)
    except ValueError as e:
        flash(str(e), "danger")
    return redirect(url_for("dashboard"))


def expense_from_form(expense_id: int = 0) -> finance_tracker.Expense:
    amount = _float("amount")
    if amount is None:
        raise ValueError("Amount is required")
    return finance_tracker.build_expense(
        request.form.get("description", ""),
        amount,
        request.form.get("type", "expense"),
        request.form.get("payment_method", "Cash"),
        request.form.get("card_id") or None,
        _int("installments", 0) or 0,
        request.form.get("date") or None,
        expense_id=expense_id,
    )


@app.route("/expenses/add", methods=["POST"])
@require_login
def add_expense_route():
    try:
        finance_tracker.add_expense(expense_from_form())
    except ValueError as e:
        flash(str(e), "danger")
    return redirect(url_for("dashboard"))


@app.route("/expenses/<int:expense_id>/edit", methods=["POST"])
@require_login
def update_expense_route(expense_id: int):
    try:
        finance_tracker.update_expense(expense_from_form(expense_id))
    except ValueError as e:
        flash(str(e), "danger")
        return redirect(url_for("dashboard", edit=expense_id))
    return redirect(url_for("dashboard"))


@app.route("/expenses/<int:expense_id>/delete", methods=["POST"])
@require_login
def delete_expense_route(expense_id: int):
    finance_tracker.delete_expense(expense_id)
    return redirect(url_for("dashboard"))


@app.route("/expenses/delete", methods=["POST"])
@require_login
def delete_expenses_route():
    """Delete the selected movements."""
    ids = request.form.getlist("delete", type=int)
    count = finance_tracker.delete_expenses(ids)
    flash(f"Deleted {count} movements.", "info")
    return redirect(url_for("dashboard"))


@app.route("/reset", methods=["POST"])
@require_login
def reset_route():
    finance_tracker.reset_data()
    flash("All movements deleted and balances reset.", "info")
    return redirect(url_for("dashboard"))


@app.route("/toggle-theme", methods=["POST"])
def toggle_theme_route():
    finance_tracker.toggle_theme()
    return redirect(request.referrer or url_for("dashboard"))


@app.route("/backup")
@require_login
def backup_route():
    resp = Response(backup.export_backup(), mimetype="application/json")
    resp.headers["Content-Disposition"] = (
        f"attachment; filename={backup.backup_filename()}"
    )
    return resp


@app.route("/restore", methods=["POST"])
@require_login
def restore_route():
    f = request.files.get("backup")
    if not f or not f.filename:
        flash("Choose a backup file.", "warning")
        return redirect(url_for("dashboard"))
    try:
        counts = backup.restore_backup(f.read())
        flash(f"Restored {counts['expenses']} movements.", "success")
    except backup.BackupError as e:
        flash(str(e), "danger")
    return redirect(url_for("dashboard"))


@app.route("/report")
@require_login
def report_route():
    data = backup.csv_report(
        finance_tracker.get_expenses(), finance_tracker.cards_by_id()
    )
    resp = Response(data, mimetype="text/csv")
    resp.headers["Content-Disposition"] = (
        f"attachment; filename={backup.report_filename()}"
    )
    return resp


def rows_from_form() -> list[dict]:
    """Read the editable import preview table back from the form."""
    rows: list[dict] = []
    i = 0
    while True:
        desc = request.form.get(f"description_{i}")
        if desc is None:
            break
        if request.form.get(f"remove_{i}") != "on":
            card_id = request.form.get(f"card_{i}", "")
            rows.append(
                {
                    "date": request.form.get(f"date_{i}", ""),
                    "description": desc,
                    "amount": request.form.get(f"amount_{i}", type=float, default=0.0),
                    "type": request.form.get(f"type_{i}", "expense"),
                    "payment_method": "Card" if card_id else "Cash",
                    "card_id": card_id,
                    "installments": request.form.get(f"installments_{i}", type=int, default=0),
                }
            )
        i += 1
    return rows


def render_preview(rows: list[dict]):
    for message in importer.row_errors(rows):
        flash(message, "warning")
    return render_template(
        "import_preview.html",
        rows=rows,
        cards=finance_tracker.get_cards(),
        card_map=finance_tracker.cards_by_id(),
        installment_options=finance_tracker.INSTALLMENT_OPTIONS,
    )


@app.route("/import", methods=["POST"])
@require_login
def import_route():
    """Read an uploaded spreadsheet and show the rows for review."""
    f = request.files.get("spreadsheet")
    if not f or not f.filename:
        flash("Choose a spreadsheet to import.", "warning")
        return redirect(url_for("dashboard"))
    try:
        rows = importer.read_spreadsheet(io.BytesIO(f.read()), f.filename)
    except importer.SpreadsheetError as e:
        flash(str(e), "danger")
        return redirect(url_for("dashboard"))
    raw = importer.parse_rows(rows, finance_tracker.get_cards())
    if not raw:
        flash("No valid movements were found in the spreadsheet.", "warning")
        return redirect(url_for("dashboard"))
    return render_preview(importer.preview_rows(raw))


@app.route("/import/confirm", methods=["POST"])
@require_login
def import_confirm_route():
    rows = rows_from_form()
    if request.form.get("action") == "apply":
        return render_preview(importer.apply_card(rows, request.form.get("global_card", "")))
    try:
        expenses = importer.confirm_rows(rows)
    except importer.SpreadsheetError:
        # render_preview flashes the offending rows.
        return render_preview(rows)
    count = finance_tracker.add_expenses(expenses)
    flash(f"Imported {count} movements.", "success")
    return redirect(url_for("dashboard"))


@app.route("/sync/push", methods=["POST"])
@require_cloud_user
def sync_push_route():
    if cloud_sync.push(session["uid"]):
        flash("Data saved to the cloud.", "success")
    else:
        flash("Error saving to the cloud.", "danger")
    return redirect(url_for("dashboard"))


@app.route("/sync/pull", methods=["POST"])
@require_cloud_user
def sync_pull_route():
    try:
        data = cloud_sync.pull(session["uid"])
    except Exception:
        logger.exception("Error loading cloud data")
        flash("Error loading data from the cloud.", "danger")
        return redirect(url_for("dashboard"))
    if data is None:
        flash("No cloud data was found for this user.", "warning")
    else:
        cloud_sync.apply(data)
        flash("Data downloaded from the cloud.", "success")
    return redirect(url_for("dashboard"))


def main():
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))
    setup_db()
    app.run(debug=True)


if __name__ == "__main__":
    main()
