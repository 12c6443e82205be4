"""Shared fakes for the test suite."""

BASE_URL = "http://app.test"


def page(links=(), elements=(), api_calls=(), timing_ms=120, errors=(), artifacts=()):
    """Raw collaborator output for one page."""
    return {
        "links": list(links),
        "elements": list(elements),
        "api_calls": list(api_calls),
        "timing_ms": timing_ms,
        "errors": list(errors),
        "artifacts": list(artifacts),
    }


class FakeAnalyzer:
    """In-memory site keyed by path.

    Values are raw page dicts, exceptions to raise, or callables that
    take the WorkItem and return either.
    """

    def __init__(self, pages, default=None):
        self.pages = pages
        self.default = default if default is not None else page()
        self.calls = []

    async def analyze(self, url, item):
        self.calls.append(item)
        path = url[len(BASE_URL):]
        result = self.pages.get(path, self.default)
        if callable(result):
            result = result(item)
        if isinstance(result, Exception):
            raise result
        return result

    @property
    def visited(self):
        return [item.path for item in self.calls]
