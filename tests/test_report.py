import json

from rich.console import Console

from crawlqa.core.followup import make_item, seed_item
from crawlqa.core.report import aggregate, print_report, write_report
from crawlqa.models.ledger import RouteLedger
from crawlqa.models.types import (
    Analysis,
    CompletedWork,
    Defect,
    DefectKind,
    DefectStatus,
    FailedWork,
    PageSnapshot,
    Severity,
    WorkKind,
)


def completed(item):
    snapshot = PageSnapshot(work_item_id=item.id, path=item.path)
    return CompletedWork(item=item, snapshot=snapshot, analysis=Analysis(snapshot=snapshot))


def ledger_of(*paths):
    ledger = RouteLedger()
    for path in paths:
        ledger.add(path)
    return ledger


def test_coverage_is_exact():
    report = aggregate(
        "http://app.test",
        ledger_of("/", "/a", "/b"),
        [completed(seed_item()), completed(make_item(WorkKind.ROUTE_DISCOVERY, "/a"))],
        [],
        [],
    )
    assert report.coverage_percent == 2 * 100 / 3
    assert report.total_discovered_routes == 3


def test_repeat_visits_count_once_for_coverage():
    report = aggregate(
        "http://app.test",
        ledger_of("/", "/a"),
        [completed(seed_item()), completed(make_item(WorkKind.FORM_TESTING, "/"))],
        [],
        [],
    )
    assert report.total_completed == 2
    assert report.coverage_percent == 50


def test_empty_ledger_has_zero_coverage():
    report = aggregate("http://app.test", RouteLedger(), [], [], [])
    assert report.coverage_percent == 0
    assert report.total_completed == 0


def test_report_dict_shape():
    defect = Defect(DefectKind.RUNTIME_ERROR, Severity.HIGH, "boom", "/a")
    fixed = Defect(DefectKind.PERFORMANCE, Severity.MEDIUM, "slow", "/", status=DefectStatus.FIXED)
    failed = FailedWork(item=make_item(WorkKind.ROUTE_DISCOVERY, "/a"), reason="gave up")
    report = aggregate(
        "http://app.test",
        ledger_of("/", "/a"),
        [completed(seed_item())],
        [failed],
        [defect, fixed],
    )

    data = report.to_dict()

    assert data["summary"] == {
        "totalCompleted": 1,
        "totalDiscoveredRoutes": 2,
        "defectCount": 2,
        "coveragePercent": 50,
        "failedCount": 1,
        "defectsFixed": 1,
        "discoveredRoutes": ["/", "/a"],
    }
    assert data["completedWork"][0]["id"] == "initial-test-root"
    assert data["completedWork"][0]["kind"] == "initial"
    assert data["failedWork"][0]["reason"] == "gave up"
    assert data["defects"][0]["status"] == "detected"
    assert data["defects"][0]["kind"] == "runtime-error"
    json.dumps(data)


def test_grouping_helpers():
    report = aggregate("http://app.test", ledger_of("/"), [], [], [
        Defect(DefectKind.RUNTIME_ERROR, Severity.HIGH, "a", "/"),
        Defect(DefectKind.RUNTIME_ERROR, Severity.HIGH, "b", "/"),
        Defect(DefectKind.PERFORMANCE, Severity.MEDIUM, "c", "/"),
    ])
    assert {k: len(v) for k, v in report.defects_by_severity().items()} == {"high": 2, "medium": 1}
    assert report.defects_by_kind() == {"runtime-error": 2, "performance": 1}


def test_write_report(tmp_path):
    report = aggregate("http://app.test", ledger_of("/"), [completed(seed_item())], [], [])
    out = write_report(report, tmp_path / "out" / "report.json")
    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["summary"]["coveragePercent"] == 100
    assert data["baseUrl"] == "http://app.test"


def test_print_report():
    console = Console(record=True, width=120)
    report = aggregate("http://app.test", ledger_of("/", "/a"), [completed(seed_item())], [], [
        Defect(DefectKind.RUNTIME_ERROR, Severity.HIGH, "TypeError: cart is undefined", "/a"),
    ])

    print_report(report, console=console)

    text = console.export_text()
    assert "Coverage: 50.0%" in text
    assert "TypeError: cart is undefined" in text
    assert "1 high" in text


def test_print_clean_report():
    console = Console(record=True, width=120)
    report = aggregate("http://app.test", ledger_of("/"), [completed(seed_item())], [], [])
    print_report(report, console=console)
    assert "No defects found" in console.export_text()
