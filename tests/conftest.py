"""Pytest fixtures for course generation tests."""

import pytest

from coursegen.models.course import CourseParams
from tests.fakes import FakeImageGenerator, FakeTextGenerator


@pytest.fixture
def course_params() -> CourseParams:
    """Sample course request for testing."""
    return CourseParams(
        title="JavaScript in Depth",
        description="Learn the language from scopes to async.",
        num_topics=3,
    )


@pytest.fixture
def fake_text() -> FakeTextGenerator:
    return FakeTextGenerator()


@pytest.fixture
def fake_images() -> FakeImageGenerator:
    return FakeImageGenerator()
