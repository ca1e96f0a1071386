"""
core/errors.py
────────────────────────────────────────────────────────────────────────
Errors the wellness core lets reach its callers.

Classifier and database degradations are *not* here: those are absorbed
(and logged) by `services.gemini` / `services.storage`.  Only bad input,
unknown users, duplicate emails and a fully failed store escape.
"""
from __future__ import annotations


class WellnessError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500


class ValidationError(WellnessError):
    """Empty, oversized or otherwise unusable input."""

    status_code = 400


class NotFoundError(WellnessError):
    status_code = 404


class ConflictError(WellnessError):
    """A unique field (email) is already taken."""

    status_code = 409


class StoreExhaustedError(WellnessError):
    """Both the database and the in-memory fallback failed."""

    status_code = 500


class InvalidRecordError(WellnessError):
    """A stored row no longer fits its model; not a reason to switch backends."""

    status_code = 500
