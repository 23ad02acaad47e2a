"""Stable slug identities for registered tests."""

import re

MAX_SLUG_LENGTH = 512

_WHITESPACE = re.compile(r"\s+")
_DISALLOWED = re.compile(r"[^a-z0-9._-]+")
_DASH_RUNS = re.compile(r"-{2,}")


def slugify(text: str, max_length: int = MAX_SLUG_LENGTH) -> str:
    """Convert text to a slug.

    Lowercases, turns whitespace into dashes, drops anything outside
    ``[a-z0-9._-]``, collapses repeated dashes and trims dashes at both ends.
    Underscores and dots are preserved.

    Args:
        text: Text to convert
        max_length: Maximum slug length

    Returns:
        Slugified text

    """
    slug = _WHITESPACE.sub("-", text.strip().lower())
    slug = _DISALLOWED.sub("", slug)
    slug = _DASH_RUNS.sub("-", slug)
    return slug.strip("-")[:max_length]


def build_test_slug(name: str, test_id: str | None = None, prefix: str | None = None) -> str:
    """Build the durable slug for a test.

    The explicit id wins over the name. A suite prefix is joined with a dot.

    Examples:
        >>> build_test_slug("Should Fetch User Data")
        'should-fetch-user-data'
        >>> build_test_slug("ignored", test_id="create", prefix="api.users")
        'api.users.create'

    """
    slug = slugify(test_id if test_id else name)
    if prefix:
        slug = f"{prefix}.{slug}"
    return slug[:MAX_SLUG_LENGTH]
