"""Entry identity and input validation for ledger commands."""

from __future__ import annotations

import threading
import time
from typing import Any, Mapping, Optional

from qscore.services.catalog import FACE_VARIANT_COUNT, MEMBER_COLORS, Task
from qscore.services.errors import EntryValidationError, ProfileValidationError
from qscore.services.types import CUSTOM_TASK_ID

EDITABLE_FIELDS = ("member_id", "task_id", "quantity")

_id_lock = threading.Lock()
_last_id_ms = 0


def new_entry_id() -> str:
    """Millisecond timestamp id, strictly increasing within this process."""
    global _last_id_ms
    with _id_lock:
        current = max(int(time.time() * 1000), _last_id_ms + 1)
        _last_id_ms = current
    return str(current)


def _require_quantity(quantity: Any) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise EntryValidationError("quantity must be a positive integer")


def _require_task(task_id: Optional[str], catalog: Mapping[str, Task], *, allow_custom: bool) -> None:
    if not task_id:
        raise EntryValidationError("task is required")
    if task_id == CUSTOM_TASK_ID:
        if not allow_custom:
            raise EntryValidationError("custom tasks cannot be edited into an entry")
        return
    if task_id not in catalog:
        raise EntryValidationError(f"unknown task: {task_id}")


def validate_new_entry(
    *,
    member_id: Optional[str],
    task_id: Optional[str],
    quantity: Any,
    catalog: Mapping[str, Task],
    custom_task_name: Optional[str] = None,
    custom_task_points: Any = None,
) -> None:
    if not member_id or not member_id.strip():
        raise EntryValidationError("member is required")
    _require_task(task_id, catalog, allow_custom=True)
    _require_quantity(quantity)

    if task_id == CUSTOM_TASK_ID:
        if not custom_task_name or not custom_task_name.strip():
            raise EntryValidationError("custom task name is required")
        if (
            isinstance(custom_task_points, bool)
            or not isinstance(custom_task_points, int)
            or custom_task_points < 1
        ):
            raise EntryValidationError("custom task points must be a positive integer")


def validate_entry_update(fields: Mapping[str, Any], catalog: Mapping[str, Task]) -> dict[str, Any]:
    """Keep the editable fields that were supplied, rejecting bad values."""

    updates = {key: value for key, value in fields.items() if key in EDITABLE_FIELDS and value is not None}
    if not updates:
        raise EntryValidationError("nothing to update")
    if "member_id" in updates and not str(updates["member_id"]).strip():
        raise EntryValidationError("member is required")
    if "task_id" in updates:
        _require_task(updates["task_id"], catalog, allow_custom=False)
    if "quantity" in updates:
        _require_quantity(updates["quantity"])
    return updates


def validate_profile(color: Optional[str], face: Optional[int]) -> None:
    if color is None and face is None:
        raise ProfileValidationError("nothing to update")
    if color is not None and color not in MEMBER_COLORS:
        raise ProfileValidationError(f"unknown color: {color}")
    if face is not None and (isinstance(face, bool) or not 0 <= face < FACE_VARIANT_COUNT):
        raise ProfileValidationError(f"face must be between 0 and {FACE_VARIANT_COUNT - 1}")
