"""Helpers for reading JSON request bodies."""
from __future__ import annotations

from flask import request


def json_body() -> dict:
    """The request's JSON object, or an empty dict for anything else."""
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def clean_text(value) -> str:
    """Stripped string for JSON text fields; non-strings read as empty."""
    return value.strip() if isinstance(value, str) else ""
