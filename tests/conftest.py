"""
Pytest configuration and shared fixtures for all tests.

This file is automatically loaded by pytest and provides:
  - Test configuration (env vars set before any discovery module is imported)
  - Profile and filter factories used across unit and integration tests
  - A mock Firestore client
"""

import os
from datetime import date, datetime, timedelta, timezone

import pytest
from unittest.mock import MagicMock

# discovery.config builds its singleton at import time and discovery.server
# validates it on import, so the environment must be ready before collection.
TEST_ENV = {
    "FIREBASE_PROJECT_ID": "test-project",
    "GOOGLE_APPLICATION_CREDENTIALS": "/config/test-serviceAccountKey.json",
    "PERPLEXITY_API_KEY": "test-perplexity-key",
    "OPENAI_API_KEY": "test-openai-key",
    "ICEBREAKERS_LLM_ENABLED": "False",
    "SCORE_CACHE_ENABLED": "False",
    "AI_SERVICE_TOKEN": "",
    "DEBUG": "True",
}
for _key, _value in TEST_ENV.items():
    os.environ[_key] = _value

from discovery.models import FilterSpec, Profile  # noqa: E402

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)
TODAY = NOW.date()

AMSTERDAM = (52.3676, 4.9041)
UTRECHT = (52.0907, 5.1214)  # ~35 km from Amsterdam
GRONINGEN = (53.2194, 6.5665)  # ~145 km from Amsterdam


def make_profile(user_id="user", age=30, **overrides) -> Profile:
    """Build a Profile with sensible defaults; camelCase or snake_case overrides."""

    birth = date(TODAY.year - age, 1, 1) if age is not None else None
    data = {
        "id": user_id,
        "name": user_id.title(),
        "birthDate": birth,
        "gender": "FEMALE",
        "city": "Amsterdam",
        "latitude": AMSTERDAM[0],
        "longitude": AMSTERDAM[1],
        "profileImage": f"https://img.example.com/{user_id}.jpg",
        "lastSeen": NOW - timedelta(hours=2),
        "createdAt": NOW - timedelta(days=30),
    }
    data.update(overrides)
    return Profile.model_validate(data)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def requester():
    """A male requester in Amsterdam looking for women aged 25-35."""

    return make_profile(
        "requester",
        age=31,
        gender="MALE",
        preferences={"minAge": 25, "maxAge": 35, "genderPreference": "FEMALE"},
    )


@pytest.fixture
def no_filters():
    return FilterSpec()


@pytest.fixture
def mock_firebase_app(monkeypatch):
    """
    Provide a mock Firebase app for testing.

    Use this fixture in tests that exercise firestore_tools against a
    MagicMock client instead of a real project.
    """
    mock_app = MagicMock()
    mock_db = MagicMock()

    monkeypatch.setattr("firebase_admin._apps", {"[DEFAULT]": mock_app})
    monkeypatch.setattr("firebase_admin.initialize_app", MagicMock(return_value=mock_app))
    monkeypatch.setattr("firebase_admin.firestore.client", MagicMock(return_value=mock_db))
    monkeypatch.setattr("discovery.tools.firestore_tools._db", None)

    return {"app": mock_app, "db": mock_db}


def make_doc(doc_id, data, exists=True):
    """Firestore document snapshot stand-in."""

    doc = MagicMock()
    doc.id = doc_id
    doc.exists = exists
    doc.to_dict.return_value = data
    return doc
