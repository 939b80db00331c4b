"""Runtime settings read from the environment.

Protean infrastructure (databases, event store, processing modes) lives in
``domain.toml``; these are the knobs of the lifecycle core itself.
"""

import os


def _float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw else default


def _int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw else default


def gateway_timeout_seconds() -> float:
    """Upper bound for a single payment-gateway call."""
    return _float("MEDFLOW_GATEWAY_TIMEOUT_SECONDS", 10.0)


def offer_timeout_minutes() -> int:
    """How long a delivery offer stays open before it expires."""
    return _int("MEDFLOW_OFFER_TIMEOUT_MINUTES", 30)


def available_deliveries_limit() -> int:
    return _int("MEDFLOW_AVAILABLE_DELIVERIES_LIMIT", 20)


def default_currency() -> str:
    return os.getenv("MEDFLOW_DEFAULT_CURRENCY", "KES")


def default_reorder_threshold() -> int:
    return _int("MEDFLOW_DEFAULT_REORDER_THRESHOLD", 10)
