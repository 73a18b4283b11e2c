"""Tag resolution for finished tests.

Tags can be declared on a test class and on its test methods with the
``with_tag`` decorator; class-level tags apply to every method:

    @with_tag("Online sales", type="feature")
    class OnlineSalesTests:
        @with_tag("Boat sales", type="story")
        def boat_sales_test(self): ...

Tags can also be declared in configuration and handed to a
``StaticTagResolver``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, Mapping, TypeVar

from runhistory.models import DEFAULT_TAG_TYPE, Tag, TestOutcome

TAGS_ATTRIBUTE = "__runhistory_tags__"

F = TypeVar("F")


class TagResolver(ABC):
    """Resolves the tags declared for a finished test."""

    @abstractmethod
    def tags_for(self, outcome: TestOutcome) -> set[Tag]:
        """Return the (name, type) tags of the test behind ``outcome``."""


def with_tags(*tags: Tag) -> Callable[[F], F]:
    """Attach tags to a test class or test function."""

    def decorate(target: F) -> F:
        # Read through __dict__ so a subclass does not append to its base's tags
        existing = vars(target).get(TAGS_ATTRIBUTE, ()) if hasattr(target, "__dict__") else ()
        setattr(target, TAGS_ATTRIBUTE, tuple(existing) + tuple(tags))
        return target

    return decorate


def with_tag(name: str, type: str = DEFAULT_TAG_TYPE) -> Callable[[F], F]:
    """Attach a single tag to a test class or test function."""
    return with_tags(Tag(name, type))


def declared_tags(target: Any) -> set[Tag]:
    """Tags declared directly on ``target`` (and inherited by classes)."""
    if target is None:
        return set()
    if isinstance(target, type):
        found: set[Tag] = set()
        for klass in target.__mro__:
            found.update(vars(klass).get(TAGS_ATTRIBUTE, ()))
        return found
    return set(getattr(target, TAGS_ATTRIBUTE, ()))


class DecoratedTagResolver(TagResolver):
    """Reads tags declared with ``with_tag`` on the test class and method."""

    def __init__(self, include_story: bool = False) -> None:
        """
        Args:
            include_story: Also tag each run with its story title, as a
                "story" tag
        """
        self.include_story = include_story

    def tags_for(self, outcome: TestOutcome) -> set[Tag]:
        tags = declared_tags(outcome.test_case)

        if isinstance(outcome.test_case, type) and outcome.method_name:
            method = getattr(outcome.test_case, outcome.method_name, None)
            tags |= declared_tags(method)

        if self.include_story and outcome.story_title:
            tags.add(Tag(outcome.story_title, "story"))

        return tags


class StaticTagResolver(TagResolver):
    """
    Tags declared up front, keyed by test identity.

    Keys may be a class name ("OnlineSalesTests"), a qualified method
    ("OnlineSalesTests.boat_sales_test") or a test title; tags from every
    matching key are combined.
    """

    def __init__(self, declarations: Mapping[str, Iterable[Tag | str]]) -> None:
        self.declarations = {
            key: frozenset(tag if isinstance(tag, Tag) else Tag.parse(tag) for tag in tags)
            for key, tags in declarations.items()
        }

    def tags_for(self, outcome: TestOutcome) -> set[Tag]:
        keys = {outcome.identity, outcome.title}
        if isinstance(outcome.test_case, type):
            keys.add(outcome.test_case.__name__)

        tags: set[Tag] = set()
        for key in keys:
            tags.update(self.declarations.get(key, ()))
        return tags


class NoTagResolver(TagResolver):
    """Resolves every test to an empty tag set."""

    def tags_for(self, outcome: TestOutcome) -> set[Tag]:
        return set()
