"""
================================================================================
Report Utilities
================================================================================

Allure attachment helpers and a plain-text results summary.

================================================================================
"""

from __future__ import annotations

import json
from dataclasses import asdict
from typing import TYPE_CHECKING, Any, Dict, List, Sequence

import allure

if TYPE_CHECKING:
    from pagetest.runner import TestResult


def attach_json(data: Any, name: str = "Data") -> None:
    """Attach JSON data to Allure report."""
    allure.attach(
        json.dumps(data, indent=2, default=str),
        name=name,
        attachment_type=allure.attachment_type.JSON,
    )


def attach_text(text: str, name: str = "Text") -> None:
    """Attach text content to Allure report."""
    allure.attach(text, name=name, attachment_type=allure.attachment_type.TEXT)


def attach_png(data: bytes, name: str = "Screenshot") -> None:
    allure.attach(data, name=name, attachment_type=allure.attachment_type.PNG)


def summarize(results: Sequence["TestResult"]) -> Dict[str, int]:
    """Count results per outcome."""
    counts = {"total": len(results), "passed": 0, "failed": 0, "errored": 0, "cancelled": 0}
    for result in results:
        counts[result.outcome.value] += 1
    return counts


def format_summary(results: Sequence["TestResult"]) -> str:
    """
    Render one line per test plus a totals line.

    Example:
        PASSED    Homepage has title (812ms)
        FAILED    Docs page loads (5003ms): page title to match: expected ...
        1 passed, 1 failed, 0 errored, 0 cancelled (2 total)
    """
    lines: List[str] = []
    for result in results:
        line = f"{result.outcome.value.upper():<9} {result.name} ({result.duration_ms}ms)"
        if result.message:
            line += f": {result.message}"
        lines.append(line)

    counts = summarize(results)
    lines.append(
        f"{counts['passed']} passed, {counts['failed']} failed, "
        f"{counts['errored']} errored, {counts['cancelled']} cancelled "
        f"({counts['total']} total)"
    )
    return "\n".join(lines)


def attach_results(results: Sequence["TestResult"], name: str = "Results") -> None:
    attach_json([asdict(result) for result in results], name=name)


__all__ = [
    "attach_json",
    "attach_text",
    "attach_png",
    "attach_results",
    "summarize",
    "format_summary",
]
