"""Shared versioned contracts for fever-report outputs."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable

CONTRACT_VERSIONS = {
    "fever_report.upload": "1.0.0",
    "fever_report.weekly": "1.0.0",
    "fever_report.week_check": "1.0.0",
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def build_contract(name: str) -> dict[str, str]:
    version = CONTRACT_VERSIONS[name]
    return {"name": name, "version": version}


def build_run_summary(
    *,
    command: str,
    inputs: Iterable[str],
    status: str = "ok",
    output: str | None = None,
    metrics: dict[str, Any] | None = None,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    return {
        "tool": "fever-report",
        "command": command,
        "status": status,
        "generated_at": utc_now_iso(),
        "inputs": [str(item) for item in inputs],
        "output": output,
        "warnings_count": len(warnings or []),
        "warnings": list(warnings or []),
        "metrics": metrics or {},
    }
