from __future__ import annotations

import copy
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Literal

import structlog
from pydantic import ValidationError

from .codec import from_dict, to_dict
from .learner import utc_now
from .store import DocumentStore, StoreError
from .types import Direction, Prediction

log = structlog.get_logger(__name__)

CallResult = Literal["pending", "win", "loss"]

STOP_PCT = 2.0
RESOLVE_AFTER = timedelta(hours=24)


@dataclass
class HistoricalCall:
    date: str
    direction: Direction
    confidence: float
    entry_price: float
    target_price: float
    actual_result: CallResult = "pending"
    pnl_percent: float | None = None


def _resolve(call: HistoricalCall, current_price: float, now: datetime) -> bool:
    if call.direction == "up":
        if current_price >= call.target_price:
            call.actual_result = "win"
            call.pnl_percent = (call.target_price - call.entry_price) / call.entry_price * 100
            return True
        if current_price <= call.entry_price * (1 - STOP_PCT / 100):
            call.actual_result = "loss"
            call.pnl_percent = -STOP_PCT
            return True
    elif call.direction == "down":
        if current_price <= call.target_price:
            call.actual_result = "win"
            call.pnl_percent = (call.entry_price - call.target_price) / call.entry_price * 100
            return True
        if current_price >= call.entry_price * (1 + STOP_PCT / 100):
            call.actual_result = "loss"
            call.pnl_percent = -STOP_PCT
            return True

    if now - datetime.fromisoformat(call.date) > RESOLVE_AFTER:
        move = (current_price - call.entry_price) / call.entry_price * 100
        pnl = move if call.direction == "up" else -move
        call.actual_result = "win" if pnl >= 0 else "loss"
        call.pnl_percent = round(pnl, 2)
        return True
    return False


class HistoricalTracker:
    """Rolling ledger of published calls, graded against target and a 2% stop."""

    def __init__(
        self,
        store: DocumentStore,
        key: str = "historical-calls",
        clock: Callable[[], datetime] = utc_now,
        retention_days: int = 30,
    ) -> None:
        self.store = store
        self.key = key
        self.clock = clock
        self.retention_days = retention_days
        self._calls: list[HistoricalCall] | None = None
        self._version: str | None = None

    @property
    def version(self) -> str | None:
        return self._version

    def load(self, force: bool = False) -> list[HistoricalCall]:
        if self._calls is not None and not force:
            return self._calls

        doc = self.store.get(self.key)
        if doc is None:
            log.warning("historical_tracker.initialised_empty", key=self.key)
            self._calls, self._version = [], None
        else:
            try:
                self._calls = from_dict(list[HistoricalCall], doc.payload)
            except ValidationError as exc:
                raise StoreError(f"Invalid call ledger under {self.key}: {exc}") from exc
            self._version = doc.version
        return self._calls

    def _commit(self, working: list[HistoricalCall]) -> None:
        new_version = self.store.put(self.key, [to_dict(c) for c in working], self._version)
        self._calls = working
        self._version = new_version

    def create_call_from_prediction(self, prediction: Prediction, entry_price: float) -> HistoricalCall:
        # sideways/mixed calls carry no target and only resolve by age
        target = prediction.target_price if prediction.target_price is not None else entry_price
        return HistoricalCall(
            date=self.clock().isoformat(),
            direction=prediction.direction,
            confidence=prediction.confidence,
            entry_price=entry_price,
            target_price=target,
        )

    def add_call(self, call: HistoricalCall) -> list[HistoricalCall]:
        working = copy.deepcopy(self.load())
        working.append(call)
        cutoff = self.clock() - timedelta(days=self.retention_days)
        working = [c for c in working if datetime.fromisoformat(c.date) >= cutoff]

        self._commit(working)
        log.info("historical_tracker.call_added", direction=call.direction, entry_price=call.entry_price)
        return working

    def update_pending_calls(self, current_price: float) -> list[HistoricalCall]:
        working = copy.deepcopy(self.load())
        now = self.clock()
        resolved = sum(
            1 for call in working if call.actual_result == "pending" and _resolve(call, current_price, now)
        )
        if not resolved:
            return self._calls or []

        self._commit(working)
        log.info("historical_tracker.calls_resolved", resolved=resolved, price=current_price)
        return working

    def get_recent_calls(self, days: int | None = None) -> list[HistoricalCall]:
        cutoff = self.clock() - timedelta(days=days if days is not None else self.retention_days)
        return [c for c in self.load() if datetime.fromisoformat(c.date) >= cutoff]
