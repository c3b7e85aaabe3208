from __future__ import annotations

from adapters.metrics.base import Metrics, Outcome


class NoOpMetrics(Metrics):
    def observe_operation_ms(self, *, operation: str, dt_ms: float) -> None:
        return

    def inc_operation(self, *, operation: str, outcome: Outcome) -> None:
        return

    def inc_constraint_conflict(self, *, operation: str) -> None:
        return

    def inc_integrity_bypass(self, *, operation: str) -> None:
        return

    def inc_query(self, *, kind: str, ok: bool) -> None:
        return
