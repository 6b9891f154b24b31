import contextlib

import pytest

from pageprint import main as pageprint_main


class FakePage:
    def __init__(self, calls, height=2400, wrappers=None, goto_error=None):
        self.calls = calls
        self.height = height
        self.wrappers = wrappers or {"before": "", "after": ""}
        self.goto_error = goto_error
        self.evaluated = []

    def set_viewport_size(self, size):
        self.calls.append(("set_viewport_size", size))

    def goto(self, url, **kwargs):
        self.calls.append(("goto", url, kwargs))
        if self.goto_error:
            raise self.goto_error

    def evaluate(self, expression):
        self.calls.append(("evaluate",))
        self.evaluated.append(expression)
        if expression == pageprint_main.PAGE_HEIGHT_JS:
            return self.height
        if "script#before" in expression:
            return self.wrappers
        return None

    def emulate_media(self, **kwargs):
        self.calls.append(("emulate_media", kwargs))

    def pdf(self, **kwargs):
        self.calls.append(("pdf", kwargs))
        return b"%PDF-fake"

    def screenshot(self, **kwargs):
        self.calls.append(("screenshot", kwargs))
        return b"\x89PNG-fake"


class FakeContext:
    def __init__(self, calls, page):
        self.calls = calls
        self.page = page

    def add_cookies(self, cookies):
        self.calls.append(("add_cookies", cookies))

    def new_page(self):
        self.calls.append(("new_page",))
        return self.page


class FakeBrowser:
    def __init__(self, calls, page):
        self.calls = calls
        self.page = page

    def new_context(self, **kwargs):
        self.calls.append(("new_context", kwargs))
        return FakeContext(self.calls, self.page)

    def close(self):
        self.calls.append(("close",))


class FakeChromium:
    def __init__(self, calls, page):
        self.calls = calls
        self.page = page

    def launch(self, **kwargs):
        self.calls.append(("launch", kwargs))
        return FakeBrowser(self.calls, self.page)


class FakePlaywright:
    """Stands in for the object yielded by sync_playwright()."""

    def __init__(self, **page_kwargs):
        self.calls = []
        self.page = FakePage(self.calls, **page_kwargs)
        self.chromium = FakeChromium(self.calls, self.page)

    def names(self):
        return [c[0] for c in self.calls]

    def call(self, name):
        for c in self.calls:
            if c[0] == name:
                return c
        raise AssertionError(f"{name} was never called")


@pytest.fixture
def engine():
    return FakePlaywright()


@pytest.fixture
def patched_engine(monkeypatch):
    """Route main()'s sync_playwright() to a fake engine."""
    fake = FakePlaywright()
    monkeypatch.setattr(pageprint_main, "sync_playwright", lambda: contextlib.nullcontext(fake))
    return fake


@pytest.fixture
def make_engine():
    return FakePlaywright
