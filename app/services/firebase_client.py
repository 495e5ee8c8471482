"""
Firebase initialization and Firestore helpers
"""

from __future__ import annotations

import base64
import json
import os
from datetime import datetime
from functools import lru_cache
from typing import Any

import firebase_admin
from firebase_admin import credentials, firestore

from app.core.config import settings

# Collection names shared with the booking tooling
EVENT_INSTANCES_COLLECTION = "event-instances"
GUEST_LISTS_COLLECTION = "guest-lists"
RSVP_COLLECTION = "guest-rsvps"
CHECK_INS_COLLECTION = "check-ins"


def _load_credentials_info() -> dict[str, Any] | None:
    if settings.FIREBASE_CREDENTIALS_JSON:
        return json.loads(settings.FIREBASE_CREDENTIALS_JSON)
    if settings.FIREBASE_CREDENTIALS_B64:
        decoded = base64.b64decode(settings.FIREBASE_CREDENTIALS_B64).decode("utf-8")
        return json.loads(decoded)
    if settings.FIREBASE_CREDENTIALS_FILE and os.path.exists(settings.FIREBASE_CREDENTIALS_FILE):
        with open(settings.FIREBASE_CREDENTIALS_FILE, "r", encoding="utf-8") as f:
            return json.load(f)
    return None


@lru_cache(maxsize=1)
def get_firestore_client():
    """Initialize and return a cached Firestore client if Firebase is enabled.

    Expects credentials via one of: FIREBASE_CREDENTIALS_JSON, FIREBASE_CREDENTIALS_B64, FIREBASE_CREDENTIALS_FILE.
    """
    if not settings.USE_FIREBASE:
        return None

    if not firebase_admin._apps:
        info = _load_credentials_info()
        if not info:
            raise RuntimeError("Firebase credentials not provided. Set FIREBASE_CREDENTIALS_FILE, FIREBASE_CREDENTIALS_JSON, or FIREBASE_CREDENTIALS_B64")

        cred = credentials.Certificate(info)
        firebase_admin.initialize_app(cred)

    return firestore.client()


def collection(name: str):
    """Return a collection reference, failing loudly when Firestore is off"""
    fs = get_firestore_client()
    if fs is None:
        raise RuntimeError("Firestore is not enabled (USE_FIREBASE=false)")
    return fs.collection(name)


def doc_to_dict(doc) -> dict[str, Any]:
    """Flatten a document snapshot into a dict carrying its id"""
    data = doc.to_dict() or {}
    data["id"] = doc.id
    return data


def clean_fields(data: dict[str, Any]) -> dict[str, Any]:
    """Drop None values (Firestore keeps them as explicit nulls) and serialise datetimes"""
    cleaned: dict[str, Any] = {}
    for key, value in data.items():
        if value is None:
            continue
        cleaned[key] = value.isoformat() if isinstance(value, datetime) else value
    return cleaned
