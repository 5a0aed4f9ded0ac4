"""First-entry-of-the-day bonus, decided once at creation time."""

from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from typing import Iterable, Optional

from qscore.config.log import log_extra
from qscore.services import dates
from qscore.services.types import PointEntry
from qscore.store.contracts import LedgerStore

logger = logging.getLogger(__name__)


def is_first_entry_of_day(
    entries: Iterable[PointEntry],
    member_id: str,
    moment: datetime,
    zone: Optional[tzinfo] = None,
) -> bool:
    """True when `member_id` has no entry in [start, end] of `moment`'s local day."""
    day_start = dates.start_of_day(moment, zone)
    day_end = dates.end_of_day(moment, zone)
    return not any(
        entry.member_id == member_id and day_start <= dates.ensure_aware(entry.timestamp) <= day_end
        for entry in entries
    )


async def assign_daily_bonus(
    store: LedgerStore,
    member_id: str,
    moment: datetime,
    zone: Optional[tzinfo] = None,
) -> bool:
    """Read-then-decide against the store of record.

    Not atomic: two first entries submitted at the same time by one member
    can both see an empty day and both receive the bonus.
    """
    result = await store.list_entries()
    if result.is_failed:
        logger.warning(
            "Daily bonus check could not read entries; bonus withheld",
            extra=log_extra(member=member_id, error=result.error),
        )
        return False
    return is_first_entry_of_day(result.data or [], member_id, moment, zone)
