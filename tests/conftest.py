from __future__ import annotations

import json
import queue
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from sessync.core.pusher import TemplatePusher
from sessync.core.reporting import ErrorReporter
from sessync.core.ses_api import TemplateNotFoundError
from sessync.core.templates import Template, TemplateSet
from sessync.core.watch import CLOSED, WatchEvent


class FakeAPI:
    """In-memory template store with the SESTemplateAPI surface."""

    def __init__(self, existing=(), update_errors: Optional[Dict[str, Exception]] = None,
                 create_errors: Optional[Dict[str, Exception]] = None):
        self.store: Dict[str, dict] = {name: {} for name in existing}
        self.update_errors = update_errors or {}
        self.create_errors = create_errors or {}
        self.calls: List[tuple] = []

    def update_template(self, name, html, subject, text):
        self.calls.append(("update", name))
        if name in self.update_errors:
            raise self.update_errors[name]
        if name not in self.store:
            raise TemplateNotFoundError(name)
        self.store[name] = {"html": html, "subject": subject, "text": text}

    def create_template(self, name, html, subject, text):
        self.calls.append(("create", name))
        if name in self.create_errors:
            raise self.create_errors[name]
        self.store[name] = {"html": html, "subject": subject, "text": text}

    def pushed(self) -> List[str]:
        return [name for op, name in self.calls if op == "update"]


class FakeReporter(ErrorReporter):
    def __init__(self):
        self.captured: List[BaseException] = []

    def capture(self, error, context=None):
        if error is None:
            return False
        self.captured.append(error)
        return True

    def flush(self, timeout=2.0):
        pass


class FakeWatcher:
    """Watch boundary double: records add/remove, events are fed by the test."""

    def __init__(self, fail_on=()):
        self.events: "queue.Queue[WatchEvent]" = queue.Queue()
        self.paths: set = set()
        self.fail_on = set(fail_on)
        self.added: List[str] = []
        self.removed: List[str] = []
        self.started_with: Optional[float] = None
        self.closed = False

    def add(self, path):
        if path in self.fail_on:
            raise OSError(f"cannot watch {path}")
        self.paths.add(path)
        self.added.append(path)

    def remove(self, path):
        self.paths.discard(path)
        self.removed.append(path)

    def start(self, poll_interval):
        self.started_with = poll_interval

    def close(self):
        if not self.closed:
            self.closed = True
            self.events.put(WatchEvent(CLOSED))


def drain(pusher: TemplatePusher) -> None:
    """Block until every push queued so far has finished (single-worker pool)."""
    pusher._pool.submit(lambda: None).result(timeout=10)


def make_template(tmp_path: Path, name: str, subject: str = "Subject", text: str = "Text",
                  html_name: Optional[str] = None, html: str = "<p>hi</p>") -> Template:
    html_file = tmp_path / (html_name or f"{name}.html")
    if not html_file.exists():
        html_file.write_text(html, encoding="utf-8")
    return Template(name=name, subject=subject, text=text, html_path=str(html_file))


def write_config(path: Path, templates: List[dict], **extra) -> Path:
    data = {
        "aws_region": "eu-west-1",
        "aws_key": "AKIAEXAMPLEKEY12345",
        "aws_secret": "secret",
        "sentry_dsn": "",
        "templates": templates,
    }
    data.update(extra)
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def template_decl(name: str, html: str, subject: str = "Subject", text: str = "Text") -> dict:
    return {
        "template_name": name,
        "subject_part": subject,
        "text_part": text,
        "html_part_file_path": html,
    }


@pytest.fixture
def reporter() -> FakeReporter:
    return FakeReporter()


@pytest.fixture
def api() -> FakeAPI:
    return FakeAPI()


@pytest.fixture
def pusher(api, reporter):
    p = TemplatePusher(api, reporter, max_workers=1)
    yield p
    p.close(wait=True)


@pytest.fixture
def sample_set(tmp_path) -> TemplateSet:
    return TemplateSet([
        make_template(tmp_path, "A", subject="Welcome"),
        make_template(tmp_path, "B", subject="Reset password"),
        make_template(tmp_path, "C", subject="Invoice"),
    ])
