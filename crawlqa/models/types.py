from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum


class WorkKind(str, Enum):
    INITIAL = "initial"
    ROUTE_DISCOVERY = "route-discovery"
    FORM_TESTING = "form-testing"
    INTERACTION_TESTING = "interaction-testing"
    API_TESTING = "api-testing"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class DefectKind(str, Enum):
    RUNTIME_ERROR = "runtime-error"
    API_ERROR = "api-error"
    PERFORMANCE = "performance"
    TEST_FAILURE = "test-failure"
    ACCESSIBILITY = "accessibility"
    VISUAL = "visual"
    FUNCTIONALITY = "functionality"


class DefectStatus(str, Enum):
    DETECTED = "detected"
    FIX_ATTEMPTED = "fix-attempted"
    FIX_FAILED = "fix-failed"
    FIXED = "fixed"


@dataclass(frozen=True)
class WorkItem:
    """One scheduled unit of page analysis plus the checks it requests.

    ``priority`` is recorded but the queue does not reorder on it.
    ``attempt`` counts how many times the item has been re-queued after
    defects were found.
    """

    id: str
    path: str
    kind: WorkKind
    priority: int
    test_cases: tuple[str, ...] = ()
    attempt: int = 0

    def retried(self) -> WorkItem:
        return replace(self, attempt=self.attempt + 1)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "path": self.path,
            "kind": self.kind.value,
            "priority": self.priority,
            "testCases": list(self.test_cases),
            "attempt": self.attempt,
        }


@dataclass(frozen=True)
class PageSnapshot:
    """Normalized result of analyzing one WorkItem."""

    work_item_id: str
    path: str
    outbound_paths: tuple[str, ...] = ()
    has_form: bool = False
    has_interactive_element: bool = False
    has_api_traffic: bool = False
    timing_ms: float = 0
    runtime_errors: tuple[str, ...] = ()
    captured_artifacts: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "workItemId": self.work_item_id,
            "path": self.path,
            "outboundPaths": list(self.outbound_paths),
            "hasForm": self.has_form,
            "hasInteractiveElement": self.has_interactive_element,
            "hasApiTraffic": self.has_api_traffic,
            "timingMs": self.timing_ms,
            "runtimeErrors": list(self.runtime_errors),
            "artifactCount": len(self.captured_artifacts),
        }


@dataclass
class Defect:
    kind: DefectKind
    severity: Severity
    description: str
    path: str
    status: DefectStatus = DefectStatus.DETECTED
    detected_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "severity": self.severity.value,
            "description": self.description,
            "path": self.path,
            "status": self.status.value,
            "detectedAt": self.detected_at.isoformat(),
        }


@dataclass(frozen=True)
class Analysis:
    """A snapshot together with what the classifier made of it."""

    snapshot: PageSnapshot
    defects: tuple[Defect, ...] = ()

    @property
    def has_form(self) -> bool:
        return self.snapshot.has_form

    @property
    def has_interactive_element(self) -> bool:
        return self.snapshot.has_interactive_element

    @property
    def has_api_traffic(self) -> bool:
        return self.snapshot.has_api_traffic

    def to_dict(self) -> dict:
        return {
            "defects": [d.to_dict() for d in self.defects],
            "hasForm": self.has_form,
            "hasInteractiveElement": self.has_interactive_element,
            "hasApiTraffic": self.has_api_traffic,
        }


@dataclass(frozen=True)
class CompletedWork:
    item: WorkItem
    snapshot: PageSnapshot
    analysis: Analysis
    follow_up_ids: tuple[str, ...] = ()
    completed_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            **self.item.to_dict(),
            "result": self.snapshot.to_dict(),
            "analysis": self.analysis.to_dict(),
            "followUps": list(self.follow_up_ids),
            "timestamp": self.completed_at.isoformat(),
        }


@dataclass(frozen=True)
class FailedWork:
    item: WorkItem
    reason: str
    failed_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            **self.item.to_dict(),
            "reason": self.reason,
            "timestamp": self.failed_at.isoformat(),
        }


@dataclass
class RunReport:
    base_url: str
    total_completed: int = 0
    total_discovered_routes: int = 0
    defect_count: int = 0
    coverage_percent: float = 0.0
    discovered_routes: list[str] = field(default_factory=list)
    completed_work: list[CompletedWork] = field(default_factory=list)
    failed_work: list[FailedWork] = field(default_factory=list)
    defects: list[Defect] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.now)
    completed_at: datetime | None = None

    @property
    def defects_fixed(self) -> int:
        return sum(1 for d in self.defects if d.status == DefectStatus.FIXED)

    def defects_by_severity(self) -> dict[str, list[Defect]]:
        grouped: dict[str, list[Defect]] = {}
        for defect in self.defects:
            grouped.setdefault(defect.severity.value, []).append(defect)
        return grouped

    def defects_by_kind(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for defect in self.defects:
            counts[defect.kind.value] = counts.get(defect.kind.value, 0) + 1
        return counts

    def to_dict(self) -> dict:
        return {
            "baseUrl": self.base_url,
            "summary": {
                "totalCompleted": self.total_completed,
                "totalDiscoveredRoutes": self.total_discovered_routes,
                "defectCount": self.defect_count,
                "coveragePercent": self.coverage_percent,
                "failedCount": len(self.failed_work),
                "defectsFixed": self.defects_fixed,
                "discoveredRoutes": list(self.discovered_routes),
            },
            "completedWork": [w.to_dict() for w in self.completed_work],
            "failedWork": [w.to_dict() for w in self.failed_work],
            "defects": [d.to_dict() for d in self.defects],
            "startedAt": self.started_at.isoformat(),
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
        }
