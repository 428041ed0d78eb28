"""Staged command — the single pending edit/cancellation slot on an order.

The command is stored on the order (``pending_update_id`` / ``pending_update``)
and must be handed back explicitly to settle it. Staging a new command
overwrites the slot, so only the latest one can be settled.
"""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from src.ps_common.enums import OrderStatus, StagedCommandKind
from src.ps_common.errors import MalformedPendingUpdateError, StalePendingUpdateError
from src.ps_order.domain.models import Order


class StagedCommand(BaseModel):
    id: str
    order_id: str
    kind: StagedCommandKind
    refund_amount: int = Field(..., ge=0)
    new_price: int | None = Field(None, ge=0)
    parameters: dict[str, Any] | None = None
    previous_status: OrderStatus | None = None
    staged_at: datetime

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


def parse_staged_command(payload: Any) -> StagedCommand:
    """Validate a staged command payload; anything unreadable is a hard error."""
    if not isinstance(payload, dict):
        raise MalformedPendingUpdateError(f"expected an object, got {type(payload).__name__}")
    try:
        command = StagedCommand.model_validate(payload)
    except ValidationError as exc:
        raise MalformedPendingUpdateError(str(exc.errors()[0]["msg"])) from exc
    if command.kind == StagedCommandKind.EDIT and command.new_price is None:
        raise MalformedPendingUpdateError("edit command without new_price")
    return command


def resolve_staged_command(order: Order, supplied: Any) -> StagedCommand:
    """Match the caller's staged command against the order's slot.

    Returns the command when it is the order's current one, or the one already
    settled (so a retried settlement can finish its remaining steps).
    """
    if supplied is None:
        raise StalePendingUpdateError(order.id, "no pending update")
    command = parse_staged_command(supplied)
    if command.order_id != order.id:
        raise MalformedPendingUpdateError(
            f"command {command.id} belongs to order {command.order_id}"
        )
    if command.id == order.settled_refund_id:
        return command
    if order.pending_update_id is None:
        raise StalePendingUpdateError(order.id, "no pending update")
    if command.id != order.pending_update_id:
        raise StalePendingUpdateError(
            order.id, f"{command.id} was superseded by {order.pending_update_id}"
        )
    return command
