"""Project aggregation over sibling orders.

Suspended (cancelled) members no longer count towards member_count / total_price,
but their refunds still count towards total_refund.
"""
from collections.abc import Iterable

from src.ps_common.enums import OrderStatus
from src.ps_common.errors import ProjectNotFoundError
from src.ps_order.domain.models import Order, ProjectSummary


def aggregate_project(project_id: str, orders: Iterable[Order]) -> ProjectSummary:
    members = sorted(
        (o for o in orders if o.project_id == project_id), key=lambda o: o.id
    )
    if not members:
        raise ProjectNotFoundError(project_id)

    active = [o for o in members if o.status != OrderStatus.SUSPENDED]
    return ProjectSummary(
        project_id=project_id,
        project_name=next((o.project_name for o in members if o.project_name), None),
        member_count=len(active),
        total_price=sum(o.price for o in active),
        total_paid=sum(o.paid_amount for o in members),
        total_refund=sum(o.refund_amount or 0 for o in members),
        order_ids=[o.id for o in active],
        suspended_order_ids=[o.id for o in members if o.status == OrderStatus.SUSPENDED],
    )
