from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict

from returns.result import Failure

from petshop_checkout.core.domain.model.errors import GatewayError, NetworkError
from petshop_checkout.core.domain.model.order import Order
from petshop_checkout.core.domain.service.gateway_settlement import GatewaySettlement

logger = logging.getLogger(__name__)

_TRANSIENT = (NetworkError, GatewayError)


@dataclass
class GatewayStatusWatcher:
    """
    Background status polling for orders waiting on the card gateway.

    One task per order, started on the running event loop. A task ends when
    the order reaches a terminal state, when ``timeout`` elapses (the order is
    left in PENDING_PAYMENT for reconciliation) or when it is cancelled.
    Gateway calls are blocking and run in a worker thread.
    """

    settlement: GatewaySettlement
    interval: float = 3.0
    timeout: float = 600.0
    _tasks: Dict[str, asyncio.Task[Order | None]] = field(default_factory=dict)

    def watch(self, order_id: str) -> asyncio.Task[Order | None]:
        running = self._tasks.get(order_id)
        if running is not None and not running.done():
            return running

        task = asyncio.create_task(self._run(order_id), name=f"gateway-watch:{order_id}")
        self._tasks[order_id] = task
        task.add_done_callback(lambda t: self._forget(order_id, t))
        logger.info("Gateway watch started", extra={"order_id": order_id})
        return task

    def is_watching(self, order_id: str) -> bool:
        task = self._tasks.get(order_id)
        return task is not None and not task.done()

    def cancel(self, order_id: str) -> bool:
        task = self._tasks.get(order_id)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    async def shutdown(self) -> None:
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    async def _run(self, order_id: str) -> Order | None:
        try:
            async with asyncio.timeout(self.timeout):
                while True:
                    await asyncio.sleep(self.interval)
                    try:
                        result = await asyncio.to_thread(self.settlement.poll, order_id)
                    except Exception:
                        logger.exception(
                            "Gateway poll raised, retrying", extra={"order_id": order_id}
                        )
                        continue

                    if isinstance(result, Failure):
                        err = result.failure()
                        if isinstance(err, _TRANSIENT):
                            logger.warning(
                                "Gateway poll failed, retrying",
                                extra={"order_id": order_id, "error": str(err)},
                            )
                            continue
                        logger.error(
                            "Gateway watch stopped",
                            extra={"order_id": order_id, "error": str(err)},
                        )
                        return None

                    order = result.unwrap()
                    if order.status.is_terminal:
                        logger.info(
                            "Gateway watch finished",
                            extra={"order_id": order_id, "status": order.status.value},
                        )
                        return order
        except TimeoutError:
            logger.warning(
                "Gateway watch timed out; order left pending",
                extra={"order_id": order_id, "timeout": self.timeout},
            )
            return None
        except asyncio.CancelledError:
            logger.info("Gateway watch cancelled", extra={"order_id": order_id})
            raise

    def _forget(self, order_id: str, task: asyncio.Task[Order | None]) -> None:
        if self._tasks.get(order_id) is task:
            del self._tasks[order_id]
