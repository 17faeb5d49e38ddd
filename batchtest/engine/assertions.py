"""Assertion styles exposed to test bodies, backed by assertpy.

Three styles are available:

- ``assert_``: ``assert_.equal(actual, expected)``, ``assert_(expr, "message")``
- ``expect``: ``expect(value).to.equal(3)``, ``expect(fn).to.raises(KeyError)``
- ``should``: same fluent chain as ``expect``, but only usable while a run is active

Every failure raised by assertpy is re-raised as ``AssertionFailure`` (an
``AssertionError``), optionally carrying the actual and expected values so
results sinks can render a diff.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional

from assertpy import assert_that
from assertpy import fail as assertpy_fail

_MISSING = object()

SnapshotMatcher = Callable[[Any], None]
Check = Callable[[Any], Any]


class AssertionFailure(AssertionError):
    def __init__(
        self,
        message: str,
        actual: Any = _MISSING,
        expected: Any = _MISSING,
        show_diff: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.actual = None if actual is _MISSING else actual
        self.expected = None if expected is _MISSING else expected
        self.has_values = actual is not _MISSING and expected is not _MISSING
        self.show_diff = show_diff and self.has_values


@contextmanager
def _failures(actual: Any = _MISSING, expected: Any = _MISSING, show_diff: bool = False) -> Iterator[None]:
    """Re-raise assertpy's AssertionError as an AssertionFailure."""
    try:
        yield
    except AssertionFailure:
        raise
    except AssertionError as e:
        raise AssertionFailure(str(e), actual, expected, show_diff=show_diff) from None


def _check_raises(
    builder: Any,
    exc_type: type[BaseException],
    match: Optional[str],
    caught: list[BaseException] | None = None,
) -> None:
    fn = builder.val
    if not callable(fn):
        raise TypeError("raises() needs a callable")

    def call() -> None:
        try:
            fn()
        except BaseException as e:
            if caught is not None:
                caught.append(e)
            raise

    message = assert_that(call, builder.description).raises(exc_type).when_called_with()
    if match is not None:
        message.matches(match)


class Assert:
    """Assert-style entry point. Calling the instance behaves like ``ok``."""

    def __call__(self, expression: Any, message: Optional[str] = None) -> None:
        self.ok(expression, message)

    @staticmethod
    def fail(message: str = "assert.fail()") -> None:
        with _failures():
            assertpy_fail(message)

    @staticmethod
    def ok(value: Any, message: Optional[str] = None) -> None:
        with _failures():
            assert_that(value, message or "").is_true()

    @staticmethod
    def not_ok(value: Any, message: Optional[str] = None) -> None:
        with _failures():
            assert_that(value, message or "").is_false()

    @staticmethod
    def equal(actual: Any, expected: Any, message: Optional[str] = None) -> None:
        with _failures(actual, expected, show_diff=True):
            assert_that(actual, message or "").is_equal_to(expected)

    # Python equality is already structural for builtin containers
    deep_equal = equal

    @staticmethod
    def not_equal(actual: Any, expected: Any, message: Optional[str] = None) -> None:
        with _failures():
            assert_that(actual, message or "").is_not_equal_to(expected)

    @staticmethod
    def strict_equal(actual: Any, expected: Any, message: Optional[str] = None) -> None:
        with _failures(actual, expected, show_diff=True):
            assert_that(actual, message or "").is_type_of(type(expected)).is_equal_to(expected)

    @staticmethod
    def is_true(value: Any, message: Optional[str] = None) -> None:
        with _failures():
            assert_that(value, message or "").is_same_as(True)

    @staticmethod
    def is_false(value: Any, message: Optional[str] = None) -> None:
        with _failures():
            assert_that(value, message or "").is_same_as(False)

    @staticmethod
    def is_none(value: Any, message: Optional[str] = None) -> None:
        with _failures():
            assert_that(value, message or "").is_none()

    @staticmethod
    def is_not_none(value: Any, message: Optional[str] = None) -> None:
        with _failures():
            assert_that(value, message or "").is_not_none()

    @staticmethod
    def is_instance(value: Any, cls: type | tuple[type, ...], message: Optional[str] = None) -> None:
        with _failures():
            assert_that(value, message or "").is_instance_of(cls)

    @staticmethod
    def include(container: Any, item: Any, message: Optional[str] = None) -> None:
        with _failures():
            assert_that(container, message or "").contains(item)

    @staticmethod
    def not_include(container: Any, item: Any, message: Optional[str] = None) -> None:
        with _failures():
            assert_that(container, message or "").does_not_contain(item)

    @staticmethod
    def length_of(value: Any, length: int, message: Optional[str] = None) -> None:
        with _failures():
            assert_that(value, message or "").is_length(length)

    @staticmethod
    def match(value: str, pattern: str, message: Optional[str] = None) -> None:
        with _failures():
            assert_that(value, message or "").matches(pattern)

    @staticmethod
    def approximately(actual: float, expected: float, delta: float, message: Optional[str] = None) -> None:
        with _failures():
            assert_that(actual, message or "").is_close_to(expected, delta)

    @staticmethod
    def raises(
        fn: Callable[[], Any],
        exc_type: type[BaseException] = Exception,
        match: Optional[str] = None,
        message: Optional[str] = None,
    ) -> BaseException:
        """Check that `fn()` raises `exc_type` and return the raised error."""
        caught: list[BaseException] = []
        with _failures():
            _check_raises(assert_that(fn, message or ""), exc_type, match, caught)
        return caught[-1]


class Expectation:
    """Fluent expectation chain; language chains (``to``, ``be``...) return the same object."""

    def __init__(
        self,
        value: Any,
        message: Optional[str] = None,
        negate: bool = False,
        snapshot_matcher: SnapshotMatcher | None = None,
    ):
        self._value = value
        self._message = message
        self._negate = negate
        self._snapshot_matcher = snapshot_matcher

    # Language chains
    @property
    def to(self) -> Expectation:
        return self

    be = been = is_ = that = which = and_ = has = have = with_ = to

    @property
    def not_(self) -> Expectation:
        return Expectation(self._value, self._message, not self._negate, self._snapshot_matcher)

    def _check(
        self,
        check: Check,
        negated: Optional[Check] = None,
        description: str = "",
        expected: Any = _MISSING,
    ) -> Expectation:
        builder = assert_that(self._value, self._message or "")
        if not self._negate:
            with _failures(self._value, expected, show_diff=expected is not _MISSING):
                check(builder)
            return self
        if negated is not None:
            with _failures():
                negated(builder)
            return self

        # No negated form in assertpy: the positive check has to fail
        try:
            check(builder)
        except AssertionError:
            return self
        prefix = f"[{self._message}] " if self._message else ""
        raise AssertionFailure(f"{prefix}Expected <{self._value}> to not {description}, but did.")

    def equal(self, expected: Any) -> Expectation:
        return self._check(
            lambda b: b.is_equal_to(expected),
            lambda b: b.is_not_equal_to(expected),
            expected=expected,
        )

    eql = equal

    def ok(self) -> Expectation:
        return self._check(lambda b: b.is_true(), lambda b: b.is_false())

    def true(self) -> Expectation:
        return self._check(lambda b: b.is_same_as(True), lambda b: b.is_not_same_as(True))

    def false(self) -> Expectation:
        return self._check(lambda b: b.is_same_as(False), lambda b: b.is_not_same_as(False))

    def none(self) -> Expectation:
        return self._check(lambda b: b.is_none(), lambda b: b.is_not_none())

    def empty(self) -> Expectation:
        return self._check(lambda b: b.is_empty(), lambda b: b.is_not_empty())

    def a(self, cls: type | tuple[type, ...]) -> Expectation:
        return self._check(lambda b: b.is_instance_of(cls), description=f"be an instance of {cls}")

    an = a

    def above(self, n: Any) -> Expectation:
        return self._check(lambda b: b.is_greater_than(n), lambda b: b.is_less_than_or_equal_to(n))

    def below(self, n: Any) -> Expectation:
        return self._check(lambda b: b.is_less_than(n), lambda b: b.is_greater_than_or_equal_to(n))

    def within(self, low: Any, high: Any) -> Expectation:
        return self._check(lambda b: b.is_between(low, high), description=f"be within {low}..{high}")

    def include(self, item: Any) -> Expectation:
        return self._check(lambda b: b.contains(item), lambda b: b.does_not_contain(item))

    contain = include

    def length(self, n: int) -> Expectation:
        return self._check(lambda b: b.is_length(n), description=f"have a length of {n}")

    def match(self, pattern: str) -> Expectation:
        return self._check(lambda b: b.matches(pattern), lambda b: b.does_not_match(pattern))

    def keys(self, *keys: Any) -> Expectation:
        return self._check(lambda b: b.contains_only(*keys), description=f"have keys {list(keys)!r}")

    def raises(self, exc_type: type[BaseException] = Exception, match: Optional[str] = None) -> Expectation:
        return self._check(
            lambda b: _check_raises(b, exc_type, match),
            description=f"raise {exc_type.__name__}",
        )

    def match_snapshot(self) -> Expectation:
        """Compare the value against the recorded snapshot for the running test."""
        if self._snapshot_matcher is None:
            raise RuntimeError("Snapshot assertions are only available inside a batch run")
        if self._negate:
            raise RuntimeError("match_snapshot() cannot be negated")
        self._snapshot_matcher(self._value)
        return self


def expect(value: Any, message: Optional[str] = None, *, snapshot_matcher: SnapshotMatcher | None = None) -> Expectation:
    return Expectation(value, message, snapshot_matcher=snapshot_matcher)


_should_enabled = False


def enable_should() -> None:
    global _should_enabled
    _should_enabled = True


def disable_should() -> None:
    global _should_enabled
    _should_enabled = False


def should(value: Any, message: Optional[str] = None, *, snapshot_matcher: SnapshotMatcher | None = None) -> Expectation:
    """Should-style entry point; only available between enable_should() and disable_should()."""
    if not _should_enabled:
        raise RuntimeError("should-style assertions are only available while a run is active")
    return Expectation(value, message, snapshot_matcher=snapshot_matcher)


assert_ = Assert()
