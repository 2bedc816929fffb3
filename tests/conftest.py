"""Shared pytest fixtures for kavita-annotations tests."""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest
import responses

from kavita_annotations.config import RetryConfig
from kavita_annotations.models import Annotation, ChapterInfo, FormatOptions

# Path to shared fixtures
FIXTURES_DIR = Path(__file__).parent / "fixtures"

BASE_URL = "http://kavita.test"

FIXED_NOW = datetime(2025, 1, 15, 12, 30, tzinfo=timezone.utc)


def load_fixture(path: str) -> Any:
    """Load a JSON fixture file.

    Args:
        path: Relative path within the fixtures directory

    Returns:
        Parsed JSON content
    """
    with open(FIXTURES_DIR / path) as f:
        return json.load(f)


def make_annotation(**overrides: Any) -> Annotation:
    """Build an annotation with sensible defaults; keyword args override fields."""
    fields = dict(
        id=1,
        chapter_id=1,
        volume_id=1,
        series_id=1,
        library_id=1,
        selected_text="Test highlight",
        comment=None,
        contains_spoiler=False,
        page_number=1,
        xpath="/html/body/p[1]",
    )
    fields.update(overrides)
    return Annotation(**fields)


def make_chapter_info(chapter_id: int, book_title: str, sort_order: int = 0,
                      authors=(), genres=()) -> ChapterInfo:
    return ChapterInfo(
        chapter_id=chapter_id,
        book_title=book_title,
        sort_order=sort_order,
        authors=list(authors),
        genres=list(genres),
    )


@pytest.fixture
def options():
    """Default format options (comments, tags and wikilinks on; spoilers off)."""
    return FormatOptions()


@pytest.fixture
def fixed_clock():
    """Clock returning a constant timestamp so documents are reproducible."""
    return lambda: FIXED_NOW


@pytest.fixture
def api_annotations():
    """Load the annotation list fixture."""
    return load_fixture("annotations.json")


@pytest.fixture
def series_1_volumes():
    """Load the volumes fixture for series 1."""
    return load_fixture("volumes-series-1.json")


@pytest.fixture
def series_3_metadata():
    """Load the series metadata fixture for series 3."""
    return load_fixture("series-metadata-3.json")


@pytest.fixture
def mock_responses():
    """Context manager for mocking HTTP responses.

    Usage:
        def test_something(mock_responses):
            mock_responses.add(responses.GET, url, json=data)
            # ... test code
    """
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


@pytest.fixture
def no_retry():
    """Retry config with a single attempt."""
    return RetryConfig(max_attempts=1, initial_delay=0.0)


@pytest.fixture
def kavita_api(no_retry):
    """Create a KavitaAPI instance for testing."""
    from kavita_annotations.api import KavitaAPI
    return KavitaAPI(base_url=BASE_URL, api_key="test-api-key", retry=no_retry)


@pytest.fixture
def authenticated(mock_responses):
    """Register a successful authentication response."""
    mock_responses.add(
        responses.POST,
        f"{BASE_URL}/api/Plugin/authenticate",
        json={"token": "jwt-token"},
        status=200,
    )
    return mock_responses
