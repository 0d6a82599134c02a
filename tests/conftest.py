"""Shared pytest fixtures for Guestbridge tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from guestbridge.api.factory import create_app  # noqa: E402
from helpers import ADMIN_TOKEN, FakeDatabase, make_settings  # noqa: E402


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def admin_headers():
    return {"X-Admin-Token": ADMIN_TOKEN}


@pytest.fixture
def classifier():
    """Text classifier double; tests set reply or error."""

    class _Classifier:
        def __init__(self) -> None:
            self.prompts: list[str] = []
            self.reply = "[]"
            self.error: Exception | None = None

        def complete(self, prompt: str) -> str:
            self.prompts.append(prompt)
            if self.error is not None:
                raise self.error
            return self.reply

    return _Classifier()


@pytest.fixture
def client(settings, fake_db, classifier):
    """TestClient over an app wired to the fake database and collaborators."""
    app = create_app(
        settings,
        db=fake_db,
        classifier_factory=lambda: classifier,
        fetcher_factory=lambda: pytest.fail("fetcher not expected"),
    )
    return TestClient(app)
