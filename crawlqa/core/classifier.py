"""Defect classifier: deterministic rules plus optional AI judgment.

Two rules always apply, independently of each other:
- every runtime error surfaced while loading the page is a high-severity
  ``runtime-error`` defect;
- a load time above the slow-page threshold is one medium-severity
  ``performance`` defect.

Defects proposed by an AI judgment are appended after these. A missing,
malformed or low-confidence judgment contributes nothing.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from crawlqa.models.types import Defect, DefectKind, PageSnapshot, Severity


logger = logging.getLogger(__name__)

SLOW_PAGE_MS = 3000

_KIND_ALIASES = {
    "accessibility": DefectKind.ACCESSIBILITY,
    "performance": DefectKind.PERFORMANCE,
    "functionality": DefectKind.FUNCTIONALITY,
    "functional": DefectKind.FUNCTIONALITY,
    "visual": DefectKind.VISUAL,
    "runtime-error": DefectKind.RUNTIME_ERROR,
    "api-error": DefectKind.API_ERROR,
}


class ClassifierFault(Exception):
    """A snapshot reached the classifier in a shape it cannot read."""


def classify(
    snapshot: PageSnapshot,
    additional: Iterable[Defect] | None = None,
    slow_page_ms: int = SLOW_PAGE_MS,
) -> list[Defect]:
    """Map a snapshot to the defects it exhibits. Never raises."""
    try:
        _check_shape(snapshot)
    except ClassifierFault as exc:
        logger.warning("Ignoring malformed snapshot: %s", exc)
        return []

    defects = []
    for error in snapshot.runtime_errors:
        defects.append(Defect(
            kind=DefectKind.RUNTIME_ERROR,
            severity=Severity.HIGH,
            description=error or "Unknown error",
            path=snapshot.path,
        ))

    if snapshot.timing_ms > slow_page_ms:
        defects.append(Defect(
            kind=DefectKind.PERFORMANCE,
            severity=Severity.MEDIUM,
            description=(
                f"Page load time exceeds {slow_page_ms / 1000:g} seconds "
                f"({snapshot.timing_ms:g}ms)"
            ),
            path=snapshot.path,
        ))

    if additional:
        defects.extend(d for d in additional if isinstance(d, Defect))
    return defects


def defects_from_judgment(
    response: Any, path: str, min_confidence: float = 0.5,
) -> list[Defect]:
    """Turn an AI judgment ``{defects: [...], confidence}`` into Defects.

    Tolerates anything: entries it cannot read are skipped, and a
    response that is not an object, lacks a usable confidence, or falls
    below ``min_confidence`` yields no defects at all.
    """
    if not isinstance(response, dict):
        return []
    confidence = response.get("confidence")
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        return []
    if not 0 <= confidence <= 1 or confidence < min_confidence:
        logger.debug("Discarding judgment for %s (confidence %s)", path, confidence)
        return []

    entries = response.get("defects")
    if not isinstance(entries, list):
        return []

    defects = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        description = entry.get("description")
        if not isinstance(description, str) or not description.strip():
            continue
        raw_kind = str(entry.get("kind") or entry.get("issue_type") or "").lower()
        try:
            severity = Severity(str(entry.get("severity", "low")).lower())
        except ValueError:
            severity = Severity.LOW
        defects.append(Defect(
            kind=_KIND_ALIASES.get(raw_kind, DefectKind.FUNCTIONALITY),
            severity=severity,
            description=description.strip(),
            path=path,
        ))
    return defects


def _check_shape(snapshot: Any):
    if not isinstance(snapshot, PageSnapshot):
        raise ClassifierFault(f"expected PageSnapshot, got {type(snapshot).__name__}")
    timing = snapshot.timing_ms
    if isinstance(timing, bool) or not isinstance(timing, (int, float)):
        raise ClassifierFault(f"timing_ms is not a number: {timing!r}")
    errors = snapshot.runtime_errors
    if not isinstance(errors, (list, tuple)) or not all(isinstance(e, str) for e in errors):
        raise ClassifierFault("runtime_errors must be a sequence of strings")
