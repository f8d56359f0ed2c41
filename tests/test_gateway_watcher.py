"""GatewayStatusWatcher: bounded, cancellable background polling."""

from __future__ import annotations

import asyncio

import pytest

from petshop_checkout.core.domain.model.errors import GatewayError, NetworkError
from petshop_checkout.core.domain.model.order import OrderId, OrderStatus
from petshop_checkout.core.domain.model.payment import PaymentSessionStatus
from petshop_checkout.core.domain.service.gateway_watcher import GatewayStatusWatcher


@pytest.fixture
def card_order(usecases, make_command):
    return usecases.place_order.place_order(make_command(method="card_gateway")).unwrap().order


@pytest.fixture
def gateway_ref(adapters, card_order) -> str:
    return adapters.sessions.find_by_order(str(card_order.order_id)).unwrap().gateway_ref


def watcher_for(usecases, timeout: float = 2.0) -> GatewayStatusWatcher:
    return GatewayStatusWatcher(
        settlement=usecases.payments.deps.gateway, interval=0.01, timeout=timeout
    )


class TestWatch:
    def test_stops_once_order_is_paid(self, usecases, adapters, card_order, gateway_ref):
        watcher = watcher_for(usecases)
        adapters.gateway.settle(gateway_ref, PaymentSessionStatus.COMPLETED)

        async def run():
            return await watcher.watch(str(card_order.order_id))

        order = asyncio.run(run())

        assert order.status is OrderStatus.PAID
        assert not watcher.is_watching(str(card_order.order_id))

    def test_keeps_polling_through_transient_errors(
        self, usecases, adapters, card_order, gateway_ref
    ):
        watcher = watcher_for(usecases)
        adapters.gateway.scripted_errors.extend(
            [NetworkError(message="timeout"), GatewayError(message="HTTP 503")]
        )
        adapters.gateway.settle(gateway_ref, PaymentSessionStatus.CANCELLED)

        async def run():
            return await watcher.watch(str(card_order.order_id))

        order = asyncio.run(run())

        assert order.status is OrderStatus.CANCELLED
        assert adapters.gateway.status_calls >= 3

    def test_keeps_polling_when_a_poll_raises(
        self, usecases, adapters, card_order, gateway_ref, monkeypatch
    ):
        watcher = watcher_for(usecases)
        gateway = adapters.gateway
        real_status = gateway.get_session_status
        calls = []

        def flaky_status(ref):
            calls.append(ref)
            if len(calls) == 1:
                raise RuntimeError("malformed gateway response")
            return real_status(ref)

        monkeypatch.setattr(gateway, "get_session_status", flaky_status)
        gateway.settle(gateway_ref, PaymentSessionStatus.COMPLETED)

        async def run():
            return await watcher.watch(str(card_order.order_id))

        order = asyncio.run(run())

        assert order.status is OrderStatus.PAID
        assert len(calls) >= 2

    def test_timeout_leaves_order_pending(self, usecases, adapters, card_order):
        watcher = watcher_for(usecases, timeout=0.05)

        async def run():
            return await watcher.watch(str(card_order.order_id))

        assert asyncio.run(run()) is None
        stored = adapters.orders.get(card_order.order_id).unwrap()
        assert stored.status is OrderStatus.PENDING_PAYMENT

    def test_unrecoverable_error_ends_the_watch(self, usecases):
        watcher = watcher_for(usecases)

        async def run():
            return await watcher.watch(str(OrderId.new()))

        assert asyncio.run(run()) is None

    def test_one_task_per_order(self, usecases, card_order):
        watcher = watcher_for(usecases)

        async def run():
            first = watcher.watch(str(card_order.order_id))
            second = watcher.watch(str(card_order.order_id))
            same = first is second
            await watcher.shutdown()
            return same

        assert asyncio.run(run())


class TestCancel:
    def test_caller_can_abandon_the_watch(self, usecases, adapters, card_order):
        watcher = watcher_for(usecases)
        order_id = str(card_order.order_id)

        async def run():
            task = watcher.watch(order_id)
            await asyncio.sleep(0.03)
            cancelled = watcher.cancel(order_id)
            await asyncio.gather(task, return_exceptions=True)
            return cancelled, task.cancelled()

        cancelled, task_cancelled = asyncio.run(run())

        assert cancelled
        assert task_cancelled
        assert not watcher.is_watching(order_id)
        stored = adapters.orders.get(card_order.order_id).unwrap()
        assert stored.status is OrderStatus.PENDING_PAYMENT

    def test_cancel_without_watch(self, usecases):
        assert not watcher_for(usecases).cancel(str(OrderId.new()))

    def test_shutdown_cancels_everything(self, usecases, make_command):
        watcher = watcher_for(usecases)
        ids = [
            str(
                usecases.place_order.place_order(make_command(method="card_gateway"))
                .unwrap()
                .order.order_id
            )
            for _ in range(2)
        ]

        async def run():
            tasks = [watcher.watch(order_id) for order_id in ids]
            await asyncio.sleep(0.02)
            await watcher.shutdown()
            return [t.cancelled() for t in tasks]

        assert asyncio.run(run()) == [True, True]
        assert not any(watcher.is_watching(order_id) for order_id in ids)
