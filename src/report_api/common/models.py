"""Models module for the app.

This module contains helpers shared by the MongoDB documents of every
feature: a utility function for generating KSUIDs (K-Sortable Unique
IDentifiers, time-ordered identifiers used as public ids) and a helper that
stamps documents with created_at and updated_at fields."""

import datetime

from ksuid import ksuid


def generate_ksuid():
    """Generate a K-Sortable Unique IDentifier (KSUID).

    KSUIDs are time-ordered UUIDs that are suitable for distributed systems
    and provide better performance characteristics than traditional UUIDs.
    They are URL-safe, timestamp prefixed, and sortable chronologically.

    Returns:
        str: A string representation of the generated KSUID.
    """
    return str(ksuid.Ksuid())


def utcnow() -> datetime.datetime:
    # MongoDB keeps millisecond precision; truncate so stored and returned values match
    now = datetime.datetime.now(datetime.timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def with_timestamps(document: dict) -> dict:
    now = utcnow()
    return {**document, "created_at": now, "updated_at": now}
