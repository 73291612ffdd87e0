#!/usr/bin/env python3
"""Credit a seller's ledger with an order settlement.

Usage: record_settlement.py SELLER_ID AMOUNT [--currency TRY] [--order-id ID]
"""
import argparse
import asyncio
from decimal import Decimal

import structlog

from payout_service.application.services import PayoutService
from payout_service.application.unit_of_work import UnitOfWork
from payout_service.config import settings
from payout_service.infrastructure.database import Database
from payout_service.logging import configure_logging


logger = structlog.get_logger()


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("seller_id")
    parser.add_argument("amount", type=Decimal)
    parser.add_argument("--currency", default=settings.default_currency)
    parser.add_argument("--order-id", default=None)
    return parser.parse_args()


async def main() -> None:
    args = parse_args()
    configure_logging(level=settings.log_level, log_format="console")

    database = Database(settings.database_url, pool_size=1, max_overflow=0)
    try:
        async with database.session() as session:
            service = PayoutService(UnitOfWork(session))
            entry = await service.credit_seller(
                seller_id=args.seller_id,
                amount=args.amount,
                currency=args.currency,
                description="Order settlement",
                reference_details={"order_id": args.order_id} if args.order_id else None,
            )
        logger.info("settlement_recorded", entry_id=entry.id, balance=str(entry.balance_after_transaction))
    finally:
        await database.close()


if __name__ == "__main__":
    asyncio.run(main())
