from __future__ import annotations

from prometheus_client import Counter, Histogram
from dbadmin.prom import REGISTRY

from adapters.metrics.base import Metrics, Outcome

# -----------------------------------------------------------------------------
# Operation-level metrics
# -----------------------------------------------------------------------------
operation_duration_ms = Histogram(
    "dbadmin_operation_duration_ms",
    "Duration (ms) of each admin operation",
    ["operation"],
    buckets=(1, 2, 5, 10, 20, 50, 100, 200, 500, 1000, 2000, 5000, 10000, 30000),
    registry=REGISTRY,
)

operations_total = Counter(
    "dbadmin_operations_total",
    "Count of admin operations labeled by operation and outcome",
    ["operation", "outcome"],
    registry=REGISTRY,
)

# -----------------------------------------------------------------------------
# Referential-integrity metrics
# -----------------------------------------------------------------------------
constraint_conflicts_total = Counter(
    "dbadmin_constraint_conflicts_total",
    "Mutations blocked by foreign keys referencing the target row",
    ["operation"],
    registry=REGISTRY,
)

integrity_bypass_total = Counter(
    "dbadmin_integrity_bypass_total",
    "Forced mutations that suspended FOREIGN_KEY_CHECKS",
    ["operation"],
    registry=REGISTRY,
)

# -----------------------------------------------------------------------------
# Free-form query metrics
# -----------------------------------------------------------------------------
queries_total = Counter(
    "dbadmin_queries_total",
    "Free-form SQL statements labeled by statement kind and ok",
    ["kind", "ok"],
    registry=REGISTRY,
)


class PrometheusMetrics(Metrics):
    def observe_operation_ms(self, *, operation: str, dt_ms: float) -> None:
        operation_duration_ms.labels(operation=operation).observe(float(dt_ms))

    def inc_operation(self, *, operation: str, outcome: Outcome) -> None:
        operations_total.labels(operation=operation, outcome=outcome).inc()

    def inc_constraint_conflict(self, *, operation: str) -> None:
        constraint_conflicts_total.labels(operation=operation).inc()

    def inc_integrity_bypass(self, *, operation: str) -> None:
        integrity_bypass_total.labels(operation=operation).inc()

    def inc_query(self, *, kind: str, ok: bool) -> None:
        queries_total.labels(kind=kind, ok=("true" if ok else "false")).inc()


# -----------------------------------------------------------------------------
# Label priming to keep /metrics stable
# -----------------------------------------------------------------------------
for operation in ("insert", "update", "delete"):
    for outcome in ("ok", "error", "conflict"):
        operations_total.labels(operation=operation, outcome=outcome).inc(0)
    constraint_conflicts_total.labels(operation=operation).inc(0)

for operation in ("update", "delete"):
    integrity_bypass_total.labels(operation=operation).inc(0)

for kind in ("select", "dml", "ddl", "other", "unknown"):
    for ok in ("true", "false"):
        queries_total.labels(kind=kind, ok=ok).inc(0)
