import pytest

from crawlqa.core.gateway import PageAnalysisGateway
from crawlqa.core.scheduler import Scheduler

from utils import BASE_URL, FakeAnalyzer


@pytest.fixture
def make_scheduler():
    def factory(pages, **kwargs):
        analyzer = FakeAnalyzer(pages)
        scheduler = Scheduler(PageAnalysisGateway(BASE_URL, analyzer), **kwargs)
        return scheduler, analyzer
    return factory
