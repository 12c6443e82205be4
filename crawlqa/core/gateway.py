"""Page analysis gateway: the only seam between the scheduler and the browser.

The gateway asks a PageAnalyzer collaborator for a raw page report and
normalizes it into a PageSnapshot. It never parses markup itself; link
hrefs come back from the collaborator as strings and are reduced to
origin-relative paths here.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Protocol
from urllib.parse import urljoin, urlparse

from crawlqa.models.types import PageSnapshot, WorkItem


logger = logging.getLogger(__name__)

FORM_TAGS = {"FORM", "INPUT", "TEXTAREA", "SELECT"}
INTERACTIVE_TAGS = {"BUTTON", "A"}

_SKIP_SCHEMES = ("javascript:", "mailto:", "tel:")
_SKIP_EXTENSIONS = {
    ".pdf", ".zip", ".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp",
    ".css", ".js", ".ico", ".woff", ".woff2", ".ttf", ".eot",
    ".mp4", ".mp3", ".webm", ".avi", ".mov",
    ".xml", ".rss", ".atom", ".json",
}


class AnalysisFailure(str, Enum):
    NAVIGATION_TIMEOUT = "navigation-timeout"
    COLLABORATOR_UNREACHABLE = "collaborator-unreachable"
    UNEXPECTED_SHAPE = "unexpected-shape"


class AnalysisError(Exception):
    """The collaborator could not produce a snapshot for one page."""

    def __init__(self, reason: AnalysisFailure, message: str = ""):
        super().__init__(message or reason.value)
        self.reason = reason
        self.message = message or reason.value

    def __str__(self) -> str:
        return f"{self.reason.value}: {self.message}"


class SetupError(Exception):
    """The collaborator cannot be initialized at all; the run cannot start."""


class PageAnalyzer(Protocol):
    """External collaborator that loads a page and reports what it saw.

    ``analyze`` returns a mapping with the keys ``links`` (raw hrefs),
    ``elements`` (dicts with at least ``tag``), ``api_calls``,
    ``timing_ms``, ``errors`` and ``artifacts``, plus an optional ``url``
    for the page the browser settled on. Missing keys are treated as empty.
    """

    async def analyze(self, url: str, item: WorkItem) -> dict[str, Any]:
        ...


class PageAnalysisGateway:

    def __init__(self, base_url: str, analyzer: PageAnalyzer):
        self.base_url = base_url.rstrip("/")
        self._analyzer = analyzer

    def url_for(self, path: str) -> str:
        return f"{self.base_url}{path}"

    async def analyze(self, item: WorkItem) -> PageSnapshot:
        """Analyze ``item.path``; raise AnalysisError if no snapshot can be made."""
        url = self.url_for(item.path)
        raw = await self._analyzer.analyze(url, item)
        if not isinstance(raw, dict):
            raise AnalysisError(
                AnalysisFailure.UNEXPECTED_SHAPE,
                f"collaborator returned {type(raw).__name__} for {url}",
            )
        # Relative links resolve against where the browser ended up, which keeps
        # a trailing slash the ledger path has lost.
        page_url = raw.get("url")
        if not isinstance(page_url, str) or not page_url:
            page_url = url
        try:
            return self._to_snapshot(item, page_url, raw)
        except (TypeError, ValueError, AttributeError) as exc:
            raise AnalysisError(AnalysisFailure.UNEXPECTED_SHAPE, str(exc)[:300]) from exc

    def _to_snapshot(self, item: WorkItem, page_url: str, raw: dict[str, Any]) -> PageSnapshot:
        links = _as_list(raw.get("links"), "links")
        elements = _as_list(raw.get("elements"), "elements")
        api_calls = _as_list(raw.get("api_calls"), "api_calls")
        errors = _as_list(raw.get("errors"), "errors")
        artifacts = _as_list(raw.get("artifacts"), "artifacts")

        outbound: list[str] = []
        for href in links:
            if not isinstance(href, str):
                continue
            path = normalize_href(href, self.base_url, page_url)
            if path is not None and path not in outbound:
                outbound.append(path)

        tags = []
        has_onclick = False
        for el in elements:
            if not isinstance(el, dict):
                raise TypeError(f"element entries must be objects, got {type(el).__name__}")
            tags.append(str(el.get("tag", "")).upper())
            has_onclick = has_onclick or bool(el.get("onclick"))

        timing = raw.get("timing_ms") or 0
        if isinstance(timing, bool) or not isinstance(timing, (int, float)):
            raise TypeError(f"timing_ms must be a number, got {type(timing).__name__}")

        return PageSnapshot(
            work_item_id=item.id,
            path=item.path,
            outbound_paths=tuple(outbound),
            has_form=any(tag in FORM_TAGS for tag in tags),
            has_interactive_element=has_onclick or any(tag in INTERACTIVE_TAGS for tag in tags),
            has_api_traffic=len(api_calls) > 0,
            timing_ms=timing,
            runtime_errors=tuple(_error_text(e) for e in errors),
            captured_artifacts=tuple(str(a) for a in artifacts),
        )


def normalize_href(href: str, base_url: str, page_url: str | None = None) -> str | None:
    """Reduce ``href`` to an origin-relative path, or None if it leaves the origin.

    Relative hrefs resolve against ``page_url`` (default: the origin root).
    Protocol-relative hrefs, non-navigational schemes and static assets
    are discarded. Fragments and query strings are dropped.
    """
    href = href.strip()
    if not href or href.startswith("#"):
        return None
    if href.startswith("//"):
        return None
    if href.lower().startswith(_SKIP_SCHEMES):
        return None

    origin = urlparse(base_url)
    resolved = urlparse(urljoin(page_url or base_url + "/", href))
    if resolved.scheme not in ("http", "https"):
        return None
    if resolved.scheme != origin.scheme or resolved.netloc != origin.netloc:
        return None

    path = resolved.path or "/"
    if any(path.lower().endswith(ext) for ext in _SKIP_EXTENSIONS):
        return None
    return normalize_path(path)


def normalize_path(path: str) -> str:
    """Ledger form of a path: leading slash, no trailing slash, no query."""
    path = urlparse(path.strip()).path
    if not path.startswith("/"):
        path = "/" + path
    return path.rstrip("/") or "/"


def _as_list(value: Any, name: str) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    raise TypeError(f"{name} must be a list, got {type(value).__name__}")


def _error_text(error: Any) -> str:
    if isinstance(error, str):
        return error
    if isinstance(error, dict):
        return str(error.get("message") or error.get("text") or "Unknown error")
    return str(error) or "Unknown error"
