"""Run entry point: owns the browser for the lifetime of one run."""

from __future__ import annotations

import logging

from crawlqa.config import DEFAULT_SEED_PATH, RunConfig
from crawlqa.core.ai_engine import DefectJudge, default_judge
from crawlqa.core.browser import PlaywrightAnalyzer
from crawlqa.core.gateway import PageAnalysisGateway, PageAnalyzer
from crawlqa.core.report import write_report
from crawlqa.core.scheduler import DefectHook, Scheduler
from crawlqa.models.ledger import ProgressCallback
from crawlqa.models.types import RunReport


logger = logging.getLogger(__name__)


async def run(
    base_url: str,
    seed_path: str = DEFAULT_SEED_PATH,
    config: RunConfig | None = None,
    on_progress: ProgressCallback | None = None,
    judge: DefectJudge | None = None,
    analyzer: PageAnalyzer | None = None,
    on_defect: DefectHook | None = None,
) -> RunReport:
    """Crawl ``base_url`` from ``seed_path`` until the work queue drains.

    Launches Chromium unless an ``analyzer`` is supplied; a browser that
    cannot start raises SetupError before any page is visited. ``on_defect``
    receives every logged Defect as it is found; setting its ``status``
    there is reflected in the report.
    """
    if config is None:
        config = RunConfig(base_url=base_url, seed_path=seed_path)
    if judge is None:
        judge = default_judge(config.min_judgment_confidence)

    if analyzer is not None:
        report = await _drive(config, analyzer, judge, on_progress, on_defect)
    else:
        async with PlaywrightAnalyzer(
            headless=config.headless,
            navigation_timeout_ms=config.navigation_timeout_ms,
        ) as browser:
            report = await _drive(config, browser, judge, on_progress, on_defect)

    if config.report_path:
        out = write_report(report, config.report_path)
        logger.info("Report written to %s", out)
    return report


async def _drive(
    config: RunConfig,
    analyzer: PageAnalyzer,
    judge: DefectJudge,
    on_progress: ProgressCallback | None,
    on_defect: DefectHook | None,
) -> RunReport:
    scheduler = Scheduler(
        gateway=PageAnalysisGateway(config.base_url, analyzer),
        judge=judge,
        max_retries=config.max_retries,
        slow_page_ms=config.slow_page_ms,
        on_progress=on_progress,
        on_defect=on_defect,
    )
    return await scheduler.run(config.seed_path)
