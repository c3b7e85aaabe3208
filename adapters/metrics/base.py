from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Literal

Outcome = Literal["ok", "error", "conflict"]


class Metrics(ABC):
    @abstractmethod
    def observe_operation_ms(self, *, operation: str, dt_ms: float) -> None: ...

    @abstractmethod
    def inc_operation(self, *, operation: str, outcome: Outcome) -> None: ...

    @abstractmethod
    def inc_constraint_conflict(self, *, operation: str) -> None: ...

    @abstractmethod
    def inc_integrity_bypass(self, *, operation: str) -> None: ...

    @abstractmethod
    def inc_query(self, *, kind: str, ok: bool) -> None: ...
