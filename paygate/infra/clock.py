from datetime import datetime, timezone


def utcnow() -> datetime:
    """Horloge par défaut des composants (UTC, timezone-aware)."""
    return datetime.now(timezone.utc)
