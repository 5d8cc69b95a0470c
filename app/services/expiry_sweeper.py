import asyncio
import logging
from typing import Callable

from app.models.database import session_scope
from app.services.order_service import OrderService

logger = logging.getLogger(__name__)


def run_expiry_sweep() -> int:
    """One sweep with a dedicated session; returns the number of orders expired."""
    with session_scope() as db:
        return OrderService(db).expire_stale_orders()


async def expiry_sweeper_loop(
    interval_seconds: int,
    sweep: Callable[[], int] = run_expiry_sweep,
) -> None:
    """Run ``sweep`` every ``interval_seconds`` until cancelled."""
    logger.info("Expiry sweeper started (interval=%ss)", interval_seconds)
    while True:
        try:
            expired = await asyncio.to_thread(sweep)
            if expired:
                logger.info("Expiry sweeper expired %s order(s)", expired)
        except Exception:
            logger.exception("Expiry sweep failed")
        await asyncio.sleep(interval_seconds)
