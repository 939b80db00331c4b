"""Protean Engine runner for the medflow domain.

Starts the Engine that processes events asynchronously (notification
handlers and the dispatcher), and optionally a polling loop that expires
delivery offers nobody accepted in time.

Usage:
    python src/server.py                          # Engine only
    python src/server.py --expire-offers          # Engine + offer expiry every 60s
    python src/server.py --expire-offers --interval 30
"""

import argparse
import asyncio

import structlog
from protean.server.engine import Engine

logger = structlog.get_logger(__name__)


def _get_domain():
    from medflow.domain import medflow

    medflow.init()
    return medflow


async def expire_offers_forever(domain, interval: float):
    from medflow.delivery.engine import expire_stale_offers

    while True:
        with domain.domain_context():
            try:
                expire_stale_offers()
            except Exception:
                logger.exception("Offer expiry pass failed")
        await asyncio.sleep(interval)


async def run(expire_offers: bool, interval: float):
    domain = _get_domain()
    tasks = [Engine(domain).run()]
    if expire_offers:
        tasks.append(expire_offers_forever(domain, interval))

    await asyncio.gather(*tasks)


def main():
    parser = argparse.ArgumentParser(description="Medflow Engine runner")
    parser.add_argument(
        "--expire-offers",
        action="store_true",
        help="Also poll for delivery offers past their deadline",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=60.0,
        help="Seconds between offer expiry passes (default: 60)",
    )
    args = parser.parse_args()

    asyncio.run(run(args.expire_offers, args.interval))


if __name__ == "__main__":
    main()
