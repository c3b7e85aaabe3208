"""Metrics snapshot for the MySQL admin API.

Reads the API's own /metrics exposition (no Prometheus server needed) and
prints the dbadmin_* families.

Pre-req:
  - API is running and you've already exercised it (e.g. via smoke_api.py)

Env:
  API_BASE (default: http://127.0.0.1:8000)
"""

from __future__ import annotations

import os
from typing import Dict, List, Tuple

import requests
from prometheus_client.parser import text_string_to_metric_families


API_BASE = os.getenv("API_BASE", "http://127.0.0.1:8000").rstrip("/")

FAMILIES = (
    "dbadmin_operations",
    "dbadmin_constraint_conflicts",
    "dbadmin_integrity_bypass",
    "dbadmin_queries",
)


def snapshot() -> Dict[str, List[Tuple[Dict[str, str], float]]]:
    resp = requests.get(f"{API_BASE}/metrics", timeout=15)
    resp.raise_for_status()

    out: Dict[str, List[Tuple[Dict[str, str], float]]] = {}
    for family in text_string_to_metric_families(resp.text):
        if family.name not in FAMILIES:
            continue
        out[family.name] = [
            (dict(s.labels), s.value)
            for s in family.samples
            if s.name.endswith("_total") and s.value > 0
        ]
    return out


def main() -> int:
    print(f"📊 Metrics snapshot from {API_BASE}/metrics")
    try:
        families = snapshot()
    except requests.RequestException as e:
        print(f"❌ Could not read metrics: {e}")
        return 2

    missing = [f for f in FAMILIES if f not in families]
    for name in FAMILIES:
        samples = families.get(name, [])
        print(f"\n{name}: {len(samples)} non-zero series")
        for labels, value in samples:
            rendered = ", ".join(f"{k}={v}" for k, v in sorted(labels.items()))
            print(f"  {{{rendered}}} {value:g}")

    if missing:
        print(f"\n❌ missing metric families: {', '.join(missing)}")
        return 3
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
