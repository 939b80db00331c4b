"""Medflow domain — the single Protean domain hosting every component.

Inventory, ordering, payments, delivery and notifications all register their
elements here, so the services can call one another explicitly and each
command still touches exactly one aggregate.
"""

import structlog
from protean.domain import Domain

from medflow.utils.logging import configure_logging

configure_logging()

medflow = Domain(name="medflow")

logger = structlog.get_logger(__name__)
