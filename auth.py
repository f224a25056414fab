import os
from functools import lru_cache

import firebase_admin
from firebase_admin import auth, credentials, firestore


@lru_cache(maxsize=1)
def init_firebase():
    cred_path = os.environ.get("FIREBASE_CREDENTIALS")
    if not cred_path:
        raise RuntimeError("FIREBASE_CREDENTIALS not set")
    try:
        return firebase_admin.get_app()
    except ValueError:
        cred = credentials.Certificate(cred_path)
        return firebase_admin.initialize_app(cred)


def verify_id_token(id_token: str) -> dict:
    init_firebase()
    return auth.verify_id_token(id_token)


def firestore_client():
    """Return a Firestore client for the configured Firebase project."""
    return firestore.client(init_firebase())
