"""
Tests for OrderService: intake, state machine, cancellation,
role views and line items.
"""

from decimal import Decimal

import pytest
from sqlalchemy import select

from service_station.core.exceptions import (
    AuthorizationError,
    BusinessValidationError,
    InvalidStatusError,
    InvalidTransitionError,
    NotFoundError,
)
from service_station.models import Car, Order, OrderWork, SystemLog, WarehouseItem
from service_station.schemas.order import (
    TERMINAL_STATUSES,
    VALID_TRANSITIONS,
    OrderCreate,
    OrderPartCreate,
    OrderStatus,
    OrderWorkCreate,
    WorkStatus,
)
from service_station.schemas.user import Actor
from service_station.services.order_service import OrderService

from conftest import actor_of

service = OrderService()

FORWARD_PATH = [
    OrderStatus.DIAGNOSTICS,
    OrderStatus.PARTS_SELECTION,
    OrderStatus.APPROVAL,
    OrderStatus.IN_WORK,
    OrderStatus.READY,
    OrderStatus.CLOSED,
]


# ============================================================
# Matrice delle transizioni
# ============================================================


class TestTransitionMatrix:
    """La matrice va solo avanti, un passo alla volta."""

    def test_forward_steps_only(self):
        for current, nxt in zip(FORWARD_PATH, FORWARD_PATH[1:]):
            targets = set(VALID_TRANSITIONS[current]) - {OrderStatus.CANCELLED}
            assert targets == {nxt}

    def test_cancel_reachable_from_every_non_terminal_state(self):
        for status in OrderStatus:
            if status in TERMINAL_STATUSES:
                assert VALID_TRANSITIONS[status] == []
            else:
                assert OrderStatus.CANCELLED in VALID_TRANSITIONS[status]

    def test_terminal_states(self):
        assert TERMINAL_STATUSES == {OrderStatus.CLOSED, OrderStatus.CANCELLED}


# ============================================================
# Accettazione
# ============================================================


class TestCreateOrder:

    @pytest.mark.asyncio
    async def test_new_order_starts_in_diagnostics(self, db, station):
        order = await service.create_order(
            db,
            OrderCreate(client_id=station.client.id, car_id=station.car.id, complaint="Fischio", current_mileage=51000),
            station.master_actor,
        )
        await db.commit()

        assert order.status == OrderStatus.DIAGNOSTICS.value
        assert order.master_id == station.master.id
        assert order.total_amount == Decimal("0.00")

        car = await db.get(Car, station.car.id)
        assert car.mileage == 51000
        assert car.last_visit_date is not None

        logs = (await db.execute(select(SystemLog))).scalars().all()
        assert [log.event_type for log in logs] == ["ORDER_CREATED"]

    @pytest.mark.asyncio
    async def test_admin_is_not_recorded_as_master(self, db, station):
        order = await service.create_order(
            db,
            OrderCreate(client_id=station.client.id, car_id=station.car.id),
            actor_of(station.admin),
        )
        assert order.master_id is None

    @pytest.mark.asyncio
    async def test_unknown_car(self, db, station):
        with pytest.raises(NotFoundError):
            await service.create_order(
                db,
                OrderCreate(client_id=station.client.id, car_id=999),
                station.master_actor,
            )

    @pytest.mark.asyncio
    async def test_car_of_another_client(self, db, station):
        from service_station.models import Client

        other = Client(full_name="Luigi Bianchi", phone="+39 333 0000000")
        db.add(other)
        await db.flush()

        with pytest.raises(BusinessValidationError, match="non appartiene"):
            await service.create_order(
                db,
                OrderCreate(client_id=other.id, car_id=station.car.id),
                station.master_actor,
            )

    @pytest.mark.asyncio
    async def test_mileage_cannot_go_backwards(self, db, station):
        with pytest.raises(BusinessValidationError, match="chilometraggio"):
            await service.create_order(
                db,
                OrderCreate(client_id=station.client.id, car_id=station.car.id, current_mileage=1000),
                station.master_actor,
            )


# ============================================================
# Transizioni di stato
# ============================================================


class TestTransition:

    @pytest.mark.asyncio
    async def test_forward_transition(self, db, station, make_order):
        order = await make_order(OrderStatus.DIAGNOSTICS)

        updated = await service.transition(db, order.id, "Parts_Selection", station.master_actor)
        await db.commit()

        assert updated.status == "Parts_Selection"
        logs = (await db.execute(select(SystemLog))).scalars().all()
        assert logs[-1].event_type == "ORDER_STATUS_CHANGED"
        assert "Diagnostics -> Parts_Selection" in logs[-1].description
        assert logs[-1].user_id == station.master.id

    @pytest.mark.asyncio
    async def test_unknown_status_string(self, db, station, make_order):
        order = await make_order(OrderStatus.DIAGNOSTICS)

        with pytest.raises(InvalidStatusError) as exc_info:
            await service.transition(db, order.id, "Finished", station.master_actor)

        assert exc_info.value.status_code == 422
        assert "Diagnostics" in exc_info.value.extra["allowed"]
        assert order.status == "Diagnostics"

    @pytest.mark.asyncio
    async def test_unknown_order(self, db, station):
        with pytest.raises(NotFoundError):
            await service.transition(db, 12345, "Parts_Selection", station.master_actor)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "current, target",
        [
            (OrderStatus.DIAGNOSTICS, OrderStatus.APPROVAL),   # salto
            (OrderStatus.DIAGNOSTICS, OrderStatus.READY),      # salto
            (OrderStatus.APPROVAL, OrderStatus.DIAGNOSTICS),   # indietro
            (OrderStatus.READY, OrderStatus.APPROVAL),         # indietro
            (OrderStatus.PARTS_SELECTION, OrderStatus.PARTS_SELECTION),
            (OrderStatus.CLOSED, OrderStatus.CANCELLED),       # da stato finale
            (OrderStatus.CANCELLED, OrderStatus.DIAGNOSTICS),
        ],
    )
    async def test_rejected_transitions(self, db, station, make_order, current, target):
        order = await make_order(current)

        with pytest.raises(InvalidTransitionError):
            await service.transition(db, order.id, target.value, station.master_actor)

        assert order.status == current.value

    @pytest.mark.asyncio
    @pytest.mark.parametrize("current", [OrderStatus.DIAGNOSTICS, OrderStatus.APPROVAL, OrderStatus.PARTS_SELECTION])
    async def test_in_work_never_reachable_directly(self, db, station, make_order, current):
        order = await make_order(current)
        order_id = order.id

        with pytest.raises(InvalidTransitionError):
            await service.transition(db, order_id, "In_Work", station.master_actor)

        await db.rollback()
        reloaded = await service.get_order(db, order_id)
        assert reloaded.status == current.value
        assert reloaded.worker_id is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "current",
        [s for s in OrderStatus if s not in (OrderStatus.CLOSED, OrderStatus.CANCELLED)],
    )
    async def test_cancel_from_any_non_terminal_state(self, db, station, make_order, current):
        order = await make_order(current)

        updated = await service.transition(db, order.id, OrderStatus.CANCELLED, station.master_actor)

        assert updated.status == "Cancelled"
        assert updated.cancel_reason is None

    @pytest.mark.asyncio
    async def test_closing_sets_completed_at(self, db, station, make_order):
        order = await make_order(OrderStatus.READY)
        assert order.completed_at is None

        updated = await service.transition(db, order.id, "Closed", station.master_actor)

        assert updated.status == "Closed"
        assert updated.completed_at is not None


class TestCancel:

    @pytest.mark.asyncio
    async def test_cancel_records_reason(self, db, station, make_order):
        order = await make_order(OrderStatus.APPROVAL)

        updated = await service.cancel(db, order.id, "  Il cliente rinuncia  ", station.master_actor)
        await db.commit()

        assert updated.status == "Cancelled"
        assert updated.cancel_reason == "Il cliente rinuncia"
        logs = (await db.execute(select(SystemLog))).scalars().all()
        assert logs[-1].event_type == "ORDER_CANCELLED"
        assert "Il cliente rinuncia" in logs[-1].description

    @pytest.mark.asyncio
    async def test_reason_required(self, db, station, make_order):
        order = await make_order(OrderStatus.APPROVAL)

        with pytest.raises(BusinessValidationError):
            await service.cancel(db, order.id, "   ", station.master_actor)

        assert order.status == "Approval"

    @pytest.mark.asyncio
    async def test_cannot_cancel_closed_order(self, db, station, make_order):
        order = await make_order(OrderStatus.CLOSED)

        with pytest.raises(InvalidTransitionError):
            await service.cancel(db, order.id, "Errore", station.master_actor)


# ============================================================
# Vista per ruolo
# ============================================================


class TestRoleView:

    @pytest.fixture
    def orders_in_every_state(self, make_order):
        async def _make():
            return {status: await make_order(status) for status in OrderStatus}
        return _make

    @pytest.mark.asyncio
    async def test_admin_sees_everything(self, db, station, orders_in_every_state):
        await orders_in_every_state()
        orders = await service.list_visible(db, actor_of(station.admin))
        assert len(orders) == len(OrderStatus)

    @pytest.mark.asyncio
    async def test_master_does_not_see_archived(self, db, station, orders_in_every_state):
        await orders_in_every_state()
        orders = await service.list_visible(db, station.master_actor)
        assert {o.status for o in orders} == {
            "Diagnostics", "Parts_Selection", "Approval", "In_Work", "Ready",
        }

    @pytest.mark.asyncio
    async def test_storekeeper_view(self, db, station, orders_in_every_state):
        await orders_in_every_state()
        orders = await service.list_visible(db, actor_of(station.storekeeper))
        assert {o.status for o in orders} == {"Parts_Selection", "Approval", "In_Work"}

    @pytest.mark.asyncio
    async def test_diagnostician_view(self, db, station, orders_in_every_state):
        await orders_in_every_state()
        orders = await service.list_visible(db, station.diagnostician_actor)
        assert {o.status for o in orders} == {"Diagnostics"}

    @pytest.mark.asyncio
    async def test_worker_sees_only_own_orders_in_work(self, db, station, make_order):
        as_main = await make_order(OrderStatus.IN_WORK, worker_id=station.worker.id)
        with_work = await make_order(OrderStatus.IN_WORK, worker_id=station.other_worker.id)
        db.add(OrderWork(
            order_id=with_work.id,
            worker_id=station.worker.id,
            service_name_snapshot="Sostituzione pastiglie",
            price=Decimal("500.00"),
        ))
        await make_order(OrderStatus.IN_WORK, worker_id=station.other_worker.id)
        await make_order(OrderStatus.READY, worker_id=station.worker.id)
        await db.commit()

        orders = await service.list_visible(db, station.worker_actor)

        assert {o.id for o in orders} == {as_main.id, with_work.id}

    @pytest.mark.asyncio
    async def test_status_filter_inside_role_view(self, db, station, orders_in_every_state):
        await orders_in_every_state()
        orders = await service.list_visible(db, station.master_actor, status_filter=OrderStatus.CLOSED)
        assert orders == []

    @pytest.mark.asyncio
    async def test_detail_outside_view_is_not_found(self, db, station, make_order):
        order = await make_order(OrderStatus.DIAGNOSTICS)

        with pytest.raises(NotFoundError):
            await service.get_visible(db, order.id, station.worker_actor)
        with pytest.raises(NotFoundError):
            await service.get_visible(db, order.id, actor_of(station.storekeeper))

        detail = await service.get_visible(db, order.id, station.diagnostician_actor)
        assert detail.id == order.id

    @pytest.mark.asyncio
    async def test_worker_detail_of_assigned_work(self, db, station, make_order):
        order = await make_order(OrderStatus.IN_WORK, worker_id=station.other_worker.id)
        db.add(OrderWork(
            order_id=order.id,
            worker_id=station.worker.id,
            service_name_snapshot="Controllo dischi",
            price=Decimal("80.00"),
        ))
        await db.commit()

        detail = await service.get_visible(db, order.id, station.worker_actor)

        assert [w.worker_id for w in detail.works] == [station.worker.id]


# ============================================================
# Cambio stato per ruolo
# ============================================================


class TestChangeStatus:

    @pytest.mark.asyncio
    async def test_master_any_allowed_transition(self, db, station, make_order):
        order = await make_order(OrderStatus.READY)

        updated = await service.change_status(db, order.id, "Closed", station.master_actor)

        assert updated.status == "Closed"

    @pytest.mark.asyncio
    async def test_cancel_through_status_requires_reason(self, db, station, make_order):
        order = await make_order(OrderStatus.APPROVAL)

        with pytest.raises(BusinessValidationError):
            await service.change_status(db, order.id, "Cancelled", station.master_actor)
        assert order.status == "Approval"

        updated = await service.change_status(
            db, order.id, "Cancelled", station.master_actor, reason="Preventivo rifiutato"
        )
        assert updated.status == "Cancelled"
        assert updated.cancel_reason == "Preventivo rifiutato"

    @pytest.mark.asyncio
    async def test_worker_finishes_own_order(self, db, station, make_order):
        order = await make_order(OrderStatus.IN_WORK, worker_id=station.worker.id)

        updated = await service.change_status(db, order.id, "Ready", station.worker_actor)

        assert updated.status == "Ready"

    @pytest.mark.asyncio
    async def test_worker_cannot_finish_someone_elses_order(self, db, station, make_order):
        order = await make_order(OrderStatus.IN_WORK, worker_id=station.other_worker.id)

        with pytest.raises(NotFoundError):
            await service.change_status(db, order.id, "Ready", station.worker_actor)

        assert order.status == "In_Work"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("target", ["Cancelled", "Closed", "Parts_Selection"])
    async def test_worker_limited_to_ready(self, db, station, make_order, target):
        order = await make_order(OrderStatus.IN_WORK, worker_id=station.worker.id)

        with pytest.raises(AuthorizationError):
            await service.change_status(db, order.id, target, station.worker_actor, reason="Basta")

        assert order.status == "In_Work"

    @pytest.mark.asyncio
    async def test_other_roles_cannot_change_status(self, db, station, make_order):
        order = await make_order(OrderStatus.DIAGNOSTICS)

        with pytest.raises(AuthorizationError):
            await service.change_status(db, order.id, "Parts_Selection", station.diagnostician_actor)
        with pytest.raises(AuthorizationError):
            await service.change_status(db, order.id, "Parts_Selection", actor_of(station.storekeeper))


# ============================================================
# Voci dell'ordine
# ============================================================


class TestLineItems:

    @pytest.mark.asyncio
    async def test_add_work_from_catalog_snapshots_price(self, db, station, catalog, make_order):
        order = await make_order(OrderStatus.PARTS_SELECTION)

        work = await service.add_work(
            db, order.id, OrderWorkCreate(service_id=catalog.pad_replacement.id), station.master_actor
        )
        catalog.pad_replacement.base_price = Decimal("650.00")
        await db.commit()

        await db.refresh(work)
        assert work.service_name_snapshot == "Sostituzione pastiglie"
        assert work.price == Decimal("500.00")
        assert work.norm_hours == Decimal("2.00")
        assert work.status == WorkStatus.PENDING.value

    @pytest.mark.asyncio
    async def test_add_free_work(self, db, station, make_order):
        order = await make_order(OrderStatus.DIAGNOSTICS)

        work = await service.add_work(
            db,
            order.id,
            OrderWorkCreate(service_name="Lavaggio motore", price=Decimal("35.50")),
            station.master_actor,
        )
        assert work.service_id is None
        assert work.norm_hours == Decimal("1.00")

    @pytest.mark.asyncio
    async def test_no_works_once_in_work(self, db, station, make_order):
        order = await make_order(OrderStatus.IN_WORK)

        with pytest.raises(BusinessValidationError):
            await service.add_work(
                db, order.id, OrderWorkCreate(service_name="Extra", price=Decimal("1.00")), station.master_actor
            )

    @pytest.mark.asyncio
    async def test_add_parts_from_warehouse_and_free(self, db, station, make_order):
        item = WarehouseItem(name="Pastiglie anteriori", brand="Brembo", quantity=4, sale_price=Decimal("45.90"))
        db.add(item)
        order = await make_order(OrderStatus.PARTS_SELECTION)

        parts = await service.add_parts(
            db,
            order.id,
            [
                OrderPartCreate(warehouse_item_id=item.id, quantity=2),
                OrderPartCreate(name="Liquido freni", brand="ATE", price=Decimal("12.00")),
            ],
            actor_of(station.storekeeper),
        )

        assert [p.name_snapshot for p in parts] == ["Pastiglie anteriori", "Liquido freni"]
        assert parts[0].brand == "Brembo"
        assert parts[0].price == Decimal("45.90")
        assert parts[0].line_total == Decimal("91.80")
        assert parts[1].warehouse_item_id is None

    @pytest.mark.asyncio
    async def test_parts_not_allowed_in_diagnostics(self, db, station, make_order):
        order = await make_order(OrderStatus.DIAGNOSTICS)

        with pytest.raises(BusinessValidationError):
            await service.add_parts(
                db, order.id, [OrderPartCreate(name="Filtro", price=Decimal("9.00"))], station.master_actor
            )

    @pytest.mark.asyncio
    async def test_missing_warehouse_item_writes_nothing(self, db, station, make_order):
        order = await make_order(OrderStatus.APPROVAL)

        with pytest.raises(NotFoundError):
            await service.add_parts(
                db,
                order.id,
                [
                    OrderPartCreate(name="Filtro", price=Decimal("9.00")),
                    OrderPartCreate(warehouse_item_id=404),
                ],
                station.master_actor,
            )

        detail = await service.get_by_id(db, order.id)
        assert detail.parts == []

    def test_part_quantity_must_be_positive(self):
        with pytest.raises(ValueError):
            OrderPartCreate(name="Filtro", price=Decimal("9.00"), quantity=0)

    def test_price_cannot_be_negative(self):
        with pytest.raises(ValueError):
            OrderWorkCreate(service_name="Sconto", price=Decimal("-1.00"))


class TestWorkProgress:

    async def _order_with_work(self, db, station, make_order):
        order = await make_order(OrderStatus.IN_WORK, worker_id=station.worker.id)
        work = OrderWork(
            order_id=order.id,
            worker_id=station.worker.id,
            service_name_snapshot="Sostituzione pastiglie",
            price=Decimal("500.00"),
        )
        db.add(work)
        await db.commit()
        return order, work

    @pytest.mark.asyncio
    async def test_worker_updates_own_work(self, db, station, make_order):
        order, work = await self._order_with_work(db, station, make_order)

        updated = await service.update_work_status(db, order.id, work.id, WorkStatus.DONE, station.worker_actor)

        assert updated.status == "Done"
        assert (await service.get_order(db, order.id)).status == "In_Work"

    @pytest.mark.asyncio
    async def test_worker_cannot_update_someone_elses_work(self, db, station, make_order):
        order, work = await self._order_with_work(db, station, make_order)

        with pytest.raises(AuthorizationError):
            await service.update_work_status(
                db, order.id, work.id, WorkStatus.DONE, actor_of(station.other_worker)
            )

    @pytest.mark.asyncio
    async def test_work_of_another_order(self, db, station, make_order):
        order, work = await self._order_with_work(db, station, make_order)
        other = await make_order(OrderStatus.IN_WORK)

        with pytest.raises(NotFoundError):
            await service.update_work_status(db, other.id, work.id, WorkStatus.DONE, station.master_actor)


# ============================================================
# Importi
# ============================================================


@pytest.mark.asyncio
async def test_amounts_round_trip_exactly(db, station, make_order):
    order = await make_order(OrderStatus.DIAGNOSTICS)
    order.prepayment = Decimal("1234.56")
    order.total_amount = Decimal("1234.56")
    await db.commit()

    db.expunge_all()
    reloaded = (await db.execute(select(Order).where(Order.id == order.id))).scalar_one()

    assert reloaded.prepayment == Decimal("1234.56")
    assert str(reloaded.total_amount) == "1234.56"


def test_actor_is_immutable():
    actor = Actor(id=1, role="Master")
    with pytest.raises(Exception):
        actor.id = 2
