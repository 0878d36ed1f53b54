"""URL slugs for courses, modules and webinars."""
import logging
import re
from typing import Callable, Iterable, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from learnhub.core.errors import Conflict

logger = logging.getLogger(__name__)

T = TypeVar("T")

_NON_SLUG = re.compile(r"[^a-z0-9\s-]")
_SPACES = re.compile(r"\s+")
_DASHES = re.compile(r"-+")

SLUG_INSERT_ATTEMPTS = 3


def generate_slug(text: str) -> str:
    """Lowercase, drop punctuation, join words with single hyphens."""
    slug = _NON_SLUG.sub("", text.lower().strip())
    slug = _SPACES.sub("-", slug)
    slug = _DASHES.sub("-", slug)
    return slug.strip("-")


def generate_unique_slug(base: str, existing: Iterable[str]) -> str:
    """Return ``base`` or the first free ``base-N`` (N = 1, 2, ...)."""
    taken = set(existing)
    if base not in taken:
        return base
    n = 1
    while f"{base}-{n}" in taken:
        n += 1
    return f"{base}-{n}"


def commit_with_unique_slug(
    db: Session,
    title: str,
    existing_slugs: Callable[[str], Iterable[str]],
    apply: Callable[[str], T],
    label: str = "slug",
) -> T:
    """Stage ``apply(slug)`` and commit, picking a fresh slug when a
    concurrent writer claims the same one first.

    ``existing_slugs(base)`` returns the slugs currently taken in the row's
    uniqueness scope. A unique index on the slug column is what actually
    detects the collision. A rollback discards everything ``apply`` staged,
    so it is called again in full on every attempt.
    """
    base = generate_slug(title) or "untitled"
    for attempt in range(1, SLUG_INSERT_ATTEMPTS + 1):
        slug = generate_unique_slug(base, existing_slugs(base))
        try:
            # apply may autoflush, so the collision can surface before commit
            row = apply(slug)
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.warning("Slug %r collided (attempt %d)", slug, attempt)
            continue
        return row
    raise Conflict(f"Could not allocate a unique {label} for {title!r}")


def insert_with_unique_slug(
    db: Session,
    title: str,
    existing_slugs: Callable[[str], Iterable[str]],
    build: Callable[[str], T],
    label: str = "slug",
) -> T:
    """Insert the row ``build(slug)`` through :func:`commit_with_unique_slug`."""
    def add(slug: str) -> T:
        row = build(slug)
        db.add(row)
        return row

    return commit_with_unique_slug(db, title, existing_slugs, add, label=label)
