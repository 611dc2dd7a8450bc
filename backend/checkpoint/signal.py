from __future__ import annotations

import logging
from typing import Optional

from .stores import RecordStore

logger = logging.getLogger("checkpoint.signal")

SIGNAL_FIELD = "led"


class SignalRelay:
    """Writes the shared approve/disapprove indicator read by the gate hardware.

    The signal is global: it does not say which submission was approved.
    """

    def __init__(self, records: RecordStore, path: str = "led") -> None:
        self.records = records
        self.path = path

    async def send(self, approved: bool) -> str:
        value = "on" if approved else "off"
        await self.records.update(self.path, {SIGNAL_FIELD: value})
        logger.info("Signal %s set to %s", self.path, value)
        return value

    async def current(self) -> Optional[str]:
        data = await self.records.get(self.path)
        if isinstance(data, dict):
            value = data.get(SIGNAL_FIELD)
            return value if isinstance(value, str) else None
        return None
