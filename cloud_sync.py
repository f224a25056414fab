"""Manual cloud backup of the whole local state to Firestore.

Each user owns one document, ``users/{uid}``. Pushing overwrites it with a
snapshot of the local store; pulling replaces the local store with it. There
is no merging of concurrent edits.
"""

import logging
from datetime import datetime

import auth
import finance_tracker

logger = logging.getLogger(__name__)

COLLECTION = "users"


def get_client():
    return auth.firestore_client()


def snapshot() -> dict:
    """Return the local state in the shape stored in the cloud."""
    return {
        "expenses": [e.to_dict() for e in finance_tracker.get_expenses()],
        "balances": finance_tracker.get_initial_balances(),
        "cards": {c.id: c.to_dict() for c in finance_tracker.get_cards()},
        "theme": finance_tracker.get_theme(),
    }


def push(uid: str, now: datetime | None = None) -> bool:
    """Save the local snapshot for ``uid``. Returns False if the write fails."""
    data = snapshot()
    data["lastUpdated"] = (now or datetime.now()).isoformat()
    try:
        get_client().collection(COLLECTION).document(uid).set(data, merge=True)
    except Exception:
        logger.exception("Error saving data for user %s", uid)
        return False
    logger.info("Document written with ID: %s", uid)
    return True


def pull(uid: str) -> dict | None:
    """Return the stored snapshot for ``uid`` or None if there is none."""
    doc = get_client().collection(COLLECTION).document(uid).get()
    if not doc.exists:
        return None
    return doc.to_dict()


def apply(data: dict) -> dict[str, int]:
    """Replace the local store with the parts of a cloud snapshot present."""
    expenses = cards = balances = None
    if "expenses" in data:
        expenses = finance_tracker.clean_expenses(data["expenses"])
    if "balances" in data:
        balances = finance_tracker.clean_balances(data["balances"])
    if "cards" in data:
        cards = finance_tracker.clean_cards(data["cards"])
    finance_tracker.replace_all(expenses=expenses, balances=balances, cards=cards)
    if data.get("theme") in finance_tracker.THEMES:
        finance_tracker.set_theme(data["theme"])
    return {
        "expenses": len(expenses or []),
        "balances": len(balances or {}),
        "cards": len(cards or []),
    }
