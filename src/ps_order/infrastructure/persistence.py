# src/ps_order/infrastructure/persistence.py
"""OrderRepository — raw SQL persistence implementation.

Every mutation is a single-row UPDATE guarded by ``version`` (optimistic lock).
Zero rows updated means someone else wrote the order first.
"""
import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ps_common.enums import OrderStatus, PaymentStatus
from src.ps_order.domain.models import Order

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_INSERT_ORDER_SQL = text("""
    INSERT INTO orders (id, user_id, project_id, project_name, file_name,
        print_parameters, status, payment_status, price, paid_amount,
        shipping_method, shipping_address, version)
    VALUES (:id, :user_id, :project_id, :project_name, :file_name,
        CAST(:print_parameters AS JSONB), :status, :payment_status, :price, :paid_amount,
        :shipping_method, CAST(:shipping_address AS JSONB), 0)
    RETURNING created_at, updated_at
""")

_UPDATE_ORDER_SQL = text("""
    UPDATE orders
    SET status = :status,
        payment_status = :payment_status,
        price = :price,
        paid_amount = :paid_amount,
        print_parameters = CAST(:print_parameters AS JSONB),
        refund_method = :refund_method,
        refund_amount = :refund_amount,
        refund_reason = :refund_reason,
        refund_bank_details = :refund_bank_details,
        pending_update_id = :pending_update_id,
        pending_update = CAST(:pending_update AS JSONB),
        settled_refund_id = :settled_refund_id,
        previous_status = :previous_status,
        tracking_code = :tracking_code,
        review = :review,
        version = version + 1,
        updated_at = NOW()
    WHERE id = :id AND version = :version
    RETURNING version, updated_at
""")

_SELECT_COLUMNS = """
    id, user_id, project_id, project_name, file_name, print_parameters,
    status, payment_status, price, paid_amount,
    refund_method, refund_amount, refund_reason, refund_bank_details,
    pending_update_id, pending_update, settled_refund_id, previous_status,
    shipping_method, shipping_address, tracking_code, review,
    version, created_at, updated_at
"""

_GET_ORDER_BY_ID_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders WHERE id = :id
""")

_LIST_BY_PROJECT_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders WHERE project_id = :project_id
    ORDER BY id ASC
""")

_LIST_ORDERS_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders
    WHERE (CAST(:user_id AS TEXT) IS NULL OR user_id = :user_id)
      AND (CAST(:status AS TEXT) IS NULL OR status = :status)
      AND (CAST(:project_id AS TEXT) IS NULL OR project_id = :project_id)
      AND (CAST(:cursor_id AS TEXT) IS NULL OR id < :cursor_id)
    ORDER BY id DESC
    LIMIT :limit
""")


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _json_or_none(value: Any) -> str | None:
    return json.dumps(value) if value is not None else None


def _row_to_order(row: Any) -> Order:
    """Convert a DB result row to an Order domain object."""
    return Order(
        id=row.id,
        user_id=row.user_id,
        project_id=row.project_id,
        project_name=row.project_name,
        file_name=row.file_name,
        print_parameters=row.print_parameters or {},
        status=OrderStatus(row.status),
        payment_status=PaymentStatus(row.payment_status),
        price=row.price,
        paid_amount=row.paid_amount,
        refund_method=row.refund_method,
        refund_amount=row.refund_amount,
        refund_reason=row.refund_reason,
        refund_bank_details=row.refund_bank_details,
        pending_update_id=row.pending_update_id,
        pending_update=row.pending_update,
        settled_refund_id=row.settled_refund_id,
        previous_status=OrderStatus(row.previous_status) if row.previous_status else None,
        shipping_method=row.shipping_method,
        shipping_address=row.shipping_address,
        tracking_code=row.tracking_code,
        review=row.review,
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class OrderRepository:
    """Concrete implementation of OrderRepositoryProtocol using raw SQL."""

    async def save(self, order: Order, db: AsyncSession) -> None:
        result = await db.execute(
            _INSERT_ORDER_SQL,
            {
                "id": order.id,
                "user_id": order.user_id,
                "project_id": order.project_id,
                "project_name": order.project_name,
                "file_name": order.file_name,
                "print_parameters": json.dumps(order.print_parameters),
                "status": order.status.value,
                "payment_status": order.payment_status.value,
                "price": order.price,
                "paid_amount": order.paid_amount,
                "shipping_method": order.shipping_method,
                "shipping_address": _json_or_none(order.shipping_address),
            },
        )
        row = result.fetchone()
        if row is not None:
            order.created_at = row.created_at
            order.updated_at = row.updated_at

    async def get_by_id(self, order_id: str, db: AsyncSession) -> Order | None:
        result = await db.execute(_GET_ORDER_BY_ID_SQL, {"id": order_id})
        row = result.fetchone()
        return _row_to_order(row) if row else None

    async def update(self, order: Order, db: AsyncSession) -> bool:
        result = await db.execute(
            _UPDATE_ORDER_SQL,
            {
                "id": order.id,
                "version": order.version,
                "status": order.status.value,
                "payment_status": order.payment_status.value,
                "price": order.price,
                "paid_amount": order.paid_amount,
                "print_parameters": json.dumps(order.print_parameters),
                "refund_method": order.refund_method,
                "refund_amount": order.refund_amount,
                "refund_reason": order.refund_reason,
                "refund_bank_details": order.refund_bank_details,
                "pending_update_id": order.pending_update_id,
                "pending_update": _json_or_none(order.pending_update),
                "settled_refund_id": order.settled_refund_id,
                "previous_status": order.previous_status.value if order.previous_status else None,
                "tracking_code": order.tracking_code,
                "review": order.review,
            },
        )
        row = result.fetchone()
        if row is None:
            return False
        order.version = row.version
        order.updated_at = row.updated_at
        return True

    async def list_by_project(self, project_id: str, db: AsyncSession) -> list[Order]:
        result = await db.execute(_LIST_BY_PROJECT_SQL, {"project_id": project_id})
        return [_row_to_order(row) for row in result.fetchall()]

    async def list_orders(
        self,
        user_id: str | None,
        status: str | None,
        project_id: str | None,
        limit: int,
        cursor_id: str | None,
        db: AsyncSession,
    ) -> list[Order]:
        result = await db.execute(
            _LIST_ORDERS_SQL,
            {
                "user_id": user_id,
                "status": status,
                "project_id": project_id,
                "cursor_id": cursor_id,
                "limit": limit,
            },
        )
        rows = result.fetchall()
        return [_row_to_order(row) for row in rows]
