"""The crawl-and-test state machine.

Each WorkItem goes Dequeued -> Analyzed -> Retrying | Completed | Failed.
The loop pops one item at a time, has the gateway analyze its page, and
classifies the result:

- gateway failure: the item fails, a ``test-failure`` defect is logged
  and the run moves on;
- defects found: the item goes back to the front of the queue so the
  same page is retried before unrelated work, until ``max_retries`` is
  spent and it fails;
- clean page: its follow-ups are enqueued (new routes gated by the
  ledger) and a CompletedWork record is kept.

The run ends when the queue is empty.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from crawlqa.core.ai_engine import DefectJudge, NullJudge
from crawlqa.core.classifier import SLOW_PAGE_MS, classify
from crawlqa.core.followup import generate, seed_item
from crawlqa.core.gateway import AnalysisError, PageAnalysisGateway, normalize_path
from crawlqa.core.report import aggregate
from crawlqa.models.ledger import ProgressCallback, RouteLedger, WorkQueue
from crawlqa.models.types import (
    Analysis,
    CompletedWork,
    Defect,
    DefectKind,
    FailedWork,
    PageSnapshot,
    RunReport,
    Severity,
    WorkItem,
    WorkKind,
)


logger = logging.getLogger(__name__)

# Receives each logged Defect itself, so remediation can update its status.
DefectHook = Callable[[Defect], None]


class Scheduler:
    """Owns the queue, the ledger and the run's logs for one run."""

    def __init__(
        self,
        gateway: PageAnalysisGateway,
        ledger: RouteLedger | None = None,
        queue: WorkQueue | None = None,
        judge: DefectJudge | None = None,
        max_retries: int | None = 3,
        slow_page_ms: int = SLOW_PAGE_MS,
        on_progress: ProgressCallback | None = None,
        on_defect: DefectHook | None = None,
    ):
        self.gateway = gateway
        self.ledger = ledger if ledger is not None else RouteLedger()
        self.queue = queue if queue is not None else WorkQueue()
        self.judge = judge or NullJudge()
        self.max_retries = max_retries
        self.slow_page_ms = slow_page_ms
        self._progress = on_progress or (lambda *_: None)
        self._on_defect = on_defect

        self.defects: list[Defect] = []
        self.completed: list[CompletedWork] = []
        self.failed: list[FailedWork] = []
        self._scheduled_ids: set[str] = set()

    def seed(self, path: str = "/") -> WorkItem:
        item = seed_item(normalize_path(path))
        self.ledger.add(item.path)
        self._scheduled_ids.add(item.id)
        self.queue.push(item)
        return item

    async def run(self, seed_path: str = "/") -> RunReport:
        """Seed the queue, drain it, and fold the results into a report."""
        started_at = datetime.now()
        seed = self.seed(seed_path)
        self._emit("run_started", {"base_url": self.gateway.base_url, "seed": seed.path})

        while await self.step():
            pass

        report = aggregate(
            base_url=self.gateway.base_url,
            ledger=self.ledger,
            completed=self.completed,
            failed=self.failed,
            defects=self.defects,
            started_at=started_at,
        )
        self._emit("run_complete", {
            "completed": report.total_completed,
            "discovered": report.total_discovered_routes,
            "defects": report.defect_count,
            "coverage": report.coverage_percent,
        })
        return report

    async def step(self) -> bool:
        """Process one work item. Return False once the queue is empty."""
        item = self.queue.pop_front()
        if item is None:
            return False

        self._emit("executing_item", {
            "id": item.id,
            "path": item.path,
            "kind": item.kind.value,
            "attempt": item.attempt,
            "pending": len(self.queue),
        })
        logger.info("Executing %s (%s, attempt %d)", item.id, item.path, item.attempt + 1)

        try:
            snapshot = await self.gateway.analyze(item)
        except AnalysisError as exc:
            logger.warning("Analysis of %s failed: %s", item.path, exc)
            self._fail(item, f"Test execution failed: {exc}")
            return True

        extra = await self._judge(snapshot)
        defects = classify(snapshot, extra, slow_page_ms=self.slow_page_ms)

        if defects:
            self._record_defects(defects)
            if self.max_retries is not None and item.attempt >= self.max_retries:
                self._fail(item, f"Defects persisted after {item.attempt + 1} attempts")
            else:
                self.queue.push_front(item.retried())
                self._emit("item_retrying", {
                    "id": item.id,
                    "path": item.path,
                    "defects": len(defects),
                    "attempt": item.attempt + 1,
                })
            return True

        self._complete(item, snapshot)
        return True

    def _complete(self, item: WorkItem, snapshot: PageSnapshot):
        self.ledger.add(item.path)

        enqueued = []
        for follow_up in generate(snapshot, self.ledger):
            if follow_up.kind is WorkKind.ROUTE_DISCOVERY:
                if not self.ledger.add(follow_up.path):
                    continue
                logger.info("Discovered new route: %s", follow_up.path)
                self._emit("route_discovered", {"path": follow_up.path, "from": item.path})
            elif follow_up.id in self._scheduled_ids:
                continue
            self._scheduled_ids.add(follow_up.id)
            self.queue.push(follow_up)
            enqueued.append(follow_up.id)

        self.completed.append(CompletedWork(
            item=item,
            snapshot=snapshot,
            analysis=Analysis(snapshot=snapshot),
            follow_up_ids=tuple(enqueued),
        ))
        self._emit("item_completed", {
            "id": item.id,
            "path": item.path,
            "follow_ups": len(enqueued),
        })

    def _fail(self, item: WorkItem, reason: str):
        self.failed.append(FailedWork(item=item, reason=reason))
        self._record_defects([Defect(
            kind=DefectKind.TEST_FAILURE,
            severity=Severity.HIGH,
            description=reason,
            path=item.path,
        )])
        self._emit("item_failed", {"id": item.id, "path": item.path, "reason": reason})

    def _record_defects(self, defects: list[Defect]):
        for defect in defects:
            self.defects.append(defect)
            logger.warning("Defect detected: %s (%s) on %s",
                           defect.description, defect.severity.value, defect.path)
            self._emit("defect_found", {
                "kind": defect.kind.value,
                "severity": defect.severity.value,
                "description": defect.description,
                "path": defect.path,
            })
            if self._on_defect is not None:
                self._on_defect(defect)

    async def _judge(self, snapshot: PageSnapshot) -> list[Defect]:
        try:
            return list(await self.judge.classify_additional(snapshot))
        except Exception:  # pylint: disable=broad-except
            logger.warning("AI judgment failed for %s; using deterministic rules only",
                           snapshot.path, exc_info=True)
            return []

    def _emit(self, event_type: str, data: dict):
        try:
            self._progress(event_type, data)
        except Exception:  # pylint: disable=broad-except
            logger.debug("Progress callback failed for %s", event_type, exc_info=True)
