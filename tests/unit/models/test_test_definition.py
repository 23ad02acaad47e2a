"""Tests for test definition models."""

import pytest
from pydantic import ValidationError

from boostsec.api_test_runner.models.test_definition import (
    TestDefinition,
    TestSuiteDefinition,
)


def test_is_todo() -> None:
    """Tests without a body or marked as stubs are todo."""

    def body(ctx: object) -> None:
        pass

    assert TestDefinition(name="a", slug="a").is_todo
    assert TestDefinition(name="a", slug="a", fn=body, stub=True).is_todo
    assert not TestDefinition(name="a", slug="a", fn=body).is_todo


def test_name_limit() -> None:
    """Names are limited to 512 characters."""
    TestDefinition(name="x" * 512, slug="x")

    with pytest.raises(ValidationError):
        TestDefinition(name="x" * 513, slug="x")


@pytest.mark.parametrize(("field", "value"), [("retry", -1), ("timeout", 0)])
def test_override_bounds(field: str, value: float) -> None:
    """Retry must be non-negative and timeout positive."""
    with pytest.raises(ValidationError):
        TestDefinition.model_validate({"name": "a", "slug": "a", field: value})


def test_definitions_are_frozen() -> None:
    """Definitions cannot be changed after registration."""
    suite = TestSuiteDefinition(name="Suite", tests=(TestDefinition(name="a", slug="a"),))

    with pytest.raises(ValidationError):
        suite.name = "Other"  # type: ignore[misc]
    with pytest.raises(ValidationError):
        suite.tests[0].skip = True  # type: ignore[misc]
