"""Test selection by metadata tag or name pattern.

Matchers are predicates over test definitions. `find_tests` applies a
matcher to a sequence of tests lazily, preserving declaration order.
Malformed matchers are rejected eagerly with `MatcherError`.
"""

from collections.abc import Callable, Collection
from re import Pattern
from typing import TYPE_CHECKING, Any, Literal

from pydantic import Field, ValidationError

from pytest_relay.errors import MatcherError
from pytest_relay.models import SchemaModel
from pytest_relay.names import Tag  # noqa: TC001

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from pytest_relay.schema import Test


class MatcherModel(SchemaModel):
    """Base of declarative matchers.

    Malformed options raise `MatcherError` on construction.
    """

    def __init__(self, **data: Any) -> None:  # noqa: ANN401
        """Initialize a matcher.

        Raises:
            MatcherError: If an option is malformed.
        """
        try:
            super().__init__(**data)

        except ValidationError as base:
            raise MatcherError(f'Malformed matcher: {base.errors()[0]['msg']}') from base


class TagMatcher(MatcherModel):
    """Select tests carrying a metadata tag.

    A test carries a tag when the tag is declared in its `tags`, or when
    its metadata maps the tag to `True`.
    """

    kind: Literal['tag'] = 'tag'

    tag: Tag = Field(
        title='Metadata tag',
    )

    def __call__(self, test: 'Test') -> bool:
        """Check whether the test carries the tag."""
        return test.has_tag(self.tag)


class PatternMatcher(MatcherModel):
    """Select tests by a regular expression.

    The pattern is searched in the test name and in its title.
    """

    kind: Literal['pattern'] = 'pattern'

    pattern: Pattern[str] = Field(
        title='Regular expression',
    )

    def __call__(self, test: 'Test') -> bool:
        """Check whether the name or the title matches."""
        if self.pattern.search(test.name):
            return True

        return bool(test.title and self.pattern.search(test.title))


class AllOf(MatcherModel):
    """Select tests matching every one of several matchers."""

    kind: Literal['all'] = 'all'

    matchers: tuple[TagMatcher | PatternMatcher, ...] = Field(
        min_length=1,
        title='Matchers',
    )

    def __call__(self, test: 'Test') -> bool:
        """Check whether every matcher selects the test."""
        return all(matcher(test) for matcher in self.matchers)


type Matcher = TagMatcher | PatternMatcher | AllOf | Callable[['Test'], bool]


class TestSelection:
    """Lazy, re-iterable selection of tests.

    The matcher is applied on iteration, so every pass over the
    selection yields the matching tests in declaration order.
    """

    __test__ = False

    def __init__(self, tests: 'Iterable[Test]', matcher: 'Matcher | None' = None) -> None:
        """Initialize a selection.

        Args:
            tests: All test definitions, in declaration order.
            matcher: Predicate selecting tests. `None` selects all tests.
        """
        if not isinstance(tests, Collection):
            tests = tuple(tests)

        self.tests = tests
        self.matcher = matcher

    def __iter__(self) -> 'Iterator[Test]':
        """Yield the matching tests."""
        for test in self.tests:
            if self.matcher is None or self.matcher(test):
                yield test

    def __repr__(self) -> str:
        """String representation."""
        return f'{type(self).__name__}(matcher={self.matcher!r})'


def make_matcher(tag: str | None = None, pattern: str | None = None) -> 'Matcher | None':
    """Build a matcher from raw options.

    Args:
        tag: Metadata tag.
        pattern: Regular expression.

    Returns:
        A matcher combining the given options, or `None` if none given.

    Raises:
        MatcherError: If the tag or the pattern is malformed.
    """
    matchers: list[TagMatcher | PatternMatcher] = []

    if tag is not None:
        matchers.append(TagMatcher(tag=tag))
    if pattern is not None:
        matchers.append(PatternMatcher(pattern=pattern))

    if not matchers:
        return None

    if len(matchers) == 1:
        return matchers[0]

    return AllOf(matchers=tuple(matchers))


def find_tests(tests: 'Iterable[Test]', matcher: 'Matcher | None' = None) -> TestSelection:
    """Select tests matching a matcher.

    Args:
        tests: All test definitions, in declaration order.
        matcher: Tag matcher, pattern matcher, or any predicate over
            tests. `None` selects every test.

    Returns:
        Lazy, re-iterable selection in declaration order.

    Raises:
        MatcherError: If the matcher is not a predicate.
    """
    if matcher is not None and not callable(matcher):
        raise MatcherError(f'Malformed matcher {matcher!r}')

    return TestSelection(tests, matcher)
