from flask import Blueprint, request, jsonify, g
import finance_tracker
import alerts
import backup
from functools import wraps

bp = Blueprint('api', __name__)


def token_required(func):
    @wraps(func)
    def wrapper(*args, **kwargs):
        auth = request.headers.get('Authorization', '')
        if not auth.startswith('Bearer '):
            return jsonify({'error': 'Unauthorized'}), 401
        token = auth.split(' ', 1)[1]
        user = finance_tracker.login_user(token)
        if not user:
            return jsonify({'error': 'Unauthorized'}), 401
        g.current_user = user
        return func(*args, **kwargs)
    return wrapper


@bp.route('/cards', methods=['GET', 'POST'])
@token_required
def cards():
    if request.method == 'GET':
        balances = finance_tracker.get_initial_balances()
        data = []
        for c in finance_tracker.get_cards():
            item = c.to_dict()
            item['initial_balance'] = balances.get(c.id, 0.0)
            data.append(item)
        return jsonify(data)
    data = request.get_json() or {}
    try:
        name = data['name']
        initial = data.get('initial_balance')
        card = finance_tracker.add_card(
            name,
            data.get('type', 'debit'),
            data.get('color') or finance_tracker.DEFAULT_COLOR,
            data.get('cutoff_day'),
            data.get('grace_period'),
            data.get('interest_rate'),
            float(initial) if initial is not None else None,
        )
    except (KeyError, TypeError, ValueError) as e:
        return jsonify({'error': f'invalid data: {e}'}), 400
    return jsonify(card.to_dict()), 201


@bp.route('/cards/<card_id>', methods=['DELETE'])
@token_required
def delete_card(card_id):
    if not finance_tracker.delete_card(card_id):
        return jsonify({'error': 'not found'}), 404
    return jsonify({'status': 'ok'})


@bp.route('/expenses', methods=['GET', 'POST'])
@token_required
def expenses():
    if request.method == 'GET':
        month = request.args.get('month', 'all')
        card = request.args.get('card', 'all')
        limit = request.args.get('limit', default=50, type=int)
        rows = finance_tracker.filter_expenses(finance_tracker.get_expenses(), month, card)
        return jsonify([e.to_dict() for e in rows[:limit]])
    data = request.get_json() or {}
    try:
        expense = finance_tracker.build_expense(
            data['description'],
            float(data['amount']),
            data.get('type', 'expense'),
            data.get('payment_method', 'Cash'),
            data.get('card_id'),
            int(data.get('installments') or 0),
            data.get('date'),
        )
    except (KeyError, TypeError, ValueError) as e:
        return jsonify({'error': f'invalid data: {e}'}), 400
    finance_tracker.add_expense(expense)
    return jsonify(expense.to_dict()), 201


@bp.route('/summary')
@token_required
def summary():
    data = []
    for s in finance_tracker.account_summaries():
        data.append({
            'card_id': s.card.id,
            'name': s.card.name,
            'type': s.card.type,
            'initial': s.initial,
            'balance': s.balance,
            'debt': s.debt,
            'monthly_due': s.monthly_due,
        })
    return jsonify(data)


@bp.route('/alerts')
@token_required
def payment_alerts():
    found = alerts.payment_alerts(
        finance_tracker.get_cards(),
        finance_tracker.get_expenses(),
        finance_tracker.get_initial_balances(),
    )
    return jsonify([a.to_dict() for a in found])


@bp.route('/backup')
@token_required
def export_backup():
    return jsonify(backup.backup_data())
