"""
Delayed automatic order processing.

Shortly after checkout a confirmed order is moved to processing without
operator involvement. The move runs as an in-process asyncio task with
its own database session; pending moves are cancelled on shutdown and
are not recovered after a restart.
"""

import asyncio
import uuid
from functools import lru_cache
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.core.config import get_settings
from storefront.core.logging import get_logger
from storefront.database.connection import get_session_factory
from storefront.services.orders.enums import (
    OrderStatus,
    PaymentOption,
    PaymentStatus,
    StatusChangeSource,
)
from storefront.services.orders.repository import OrderRepository
from storefront.services.orders.state_machine import OrderStateMachine

logger = get_logger(__name__)


class OrderAutoProcessor:
    """
    Moves confirmed orders to processing after a delay.

    Args:
        session_factory: Factory for the sessions used by each move
        delay_seconds: Delay before the move, defaults to settings
        requires_payment: Hold online orders until they are paid,
            defaults to settings
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        delay_seconds: Optional[float] = None,
        requires_payment: Optional[bool] = None,
    ) -> None:
        settings = get_settings()
        self._session_factory = session_factory
        self.delay_seconds = (
            settings.order_auto_process_delay_seconds
            if delay_seconds is None
            else delay_seconds
        )
        self.requires_payment = (
            settings.order_auto_process_requires_payment
            if requires_payment is None
            else requires_payment
        )
        self.state_machine = OrderStateMachine()
        self._tasks: dict[uuid.UUID, asyncio.Task] = {}

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            self._session_factory = get_session_factory()
        return self._session_factory

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(self, order_id: uuid.UUID) -> asyncio.Task:
        """Schedule the confirmed -> processing move for an order."""
        existing = self._tasks.get(order_id)
        if existing is not None and not existing.done():
            return existing

        task = asyncio.create_task(self._run(order_id), name=f"auto-process-{order_id}")
        self._tasks[order_id] = task
        task.add_done_callback(lambda _: self._tasks.pop(order_id, None))

        logger.debug(
            "Order auto-processing scheduled",
            order_id=str(order_id),
            delay_seconds=self.delay_seconds,
        )
        return task

    def cancel(self, order_id: uuid.UUID) -> bool:
        task = self._tasks.pop(order_id, None)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    async def _run(self, order_id: uuid.UUID) -> None:
        await asyncio.sleep(self.delay_seconds)
        try:
            await self.process(order_id)
        except Exception as e:
            logger.error(
                "Order auto-processing failed",
                order_id=str(order_id),
                error=str(e),
                exc_info=True,
            )

    async def process(self, order_id: uuid.UUID) -> bool:
        """
        Move the order to processing if it is still confirmed.

        Returns:
            True if the order was moved
        """
        async with self.session_factory() as session:
            repository = OrderRepository(session)
            order = await repository.get_by_id(order_id, for_update=True)

            if order is None:
                logger.info("Order vanished before auto-processing", order_id=str(order_id))
                return False

            if order.status != OrderStatus.CONFIRMED:
                logger.info(
                    "Order no longer confirmed, auto-processing skipped",
                    order_id=str(order_id),
                    status=order.status.value,
                )
                return False

            if (
                self.requires_payment
                and order.payment_option == PaymentOption.ONLINE
                and order.payment_status != PaymentStatus.PAID
            ):
                logger.info(
                    "Online order not paid, auto-processing skipped",
                    order_id=str(order_id),
                    payment_status=order.payment_status.value,
                )
                return False

            self.state_machine.apply_transition(
                order,
                OrderStatus.PROCESSING,
                source=StatusChangeSource.SCHEDULER,
                reason="Automatic processing after confirmation",
            )
            await session.commit()

        logger.info("Order moved to processing", order_id=str(order_id))
        return True

    async def shutdown(self) -> None:
        """Cancel every pending move."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("Pending order auto-processing cancelled", count=len(tasks))
        self._tasks.clear()


@lru_cache()
def get_auto_processor() -> OrderAutoProcessor:
    """Get the process-wide auto processor."""
    return OrderAutoProcessor()
