"""Tri-state result type for flat error handling (success, warning, failure).

A warning carries a usable value plus one or more non-fatal messages, so
batch operations can report partial problems without discarding what they
fetched. Messages are newline-joined strings meant for humans.
"""

import inspect
from collections.abc import Awaitable, Callable, Generator
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Generic, TypeVar

T = TypeVar("T")
U = TypeVar("U")

DEFAULT_NULL_MESSAGE = "Value cannot be null"


class Status(StrEnum):
    """Outcome of an operation."""

    SUCCESS = "success"
    WARNING = "warning"
    FAILURE = "failure"


def _join(messages: tuple[str, ...]) -> str:
    if not messages or not all(messages):
        raise ValueError("At least one non-empty message is required")
    return "\n".join(messages)


class _Combinators:
    """Inspection and composition shared by all three variants."""

    status: Status

    @property
    def is_success(self) -> bool:
        return self.status is Status.SUCCESS

    @property
    def is_warning(self) -> bool:
        return self.status is Status.WARNING

    @property
    def is_failure(self) -> bool:
        return self.status is Status.FAILURE

    def value_or_default(self, default: Any = None) -> Any:
        """Return the value for success and warning, otherwise ``default``."""
        if isinstance(self, Err):
            return default
        return self.value  # type: ignore[attr-defined]

    def _rewrap(self, value: Any) -> "Result[Any]":
        if isinstance(self, Warn):
            return Warn(value, self.message)
        return Ok(value)

    def map(self, transform: Callable[[Any], U]) -> "Result[U]":
        """Transform the value, keeping the status and any warning message.

        ``transform`` is never called on a failure. It must not fail itself;
        use ``bind`` for fallible steps.
        """
        if isinstance(self, Err):
            return self
        return self._rewrap(transform(self.value))  # type: ignore[attr-defined]

    async def map_async(self, transform: Callable[[Any], Awaitable[U]]) -> "Result[U]":
        if isinstance(self, Err):
            return self
        return self._rewrap(await transform(self.value))  # type: ignore[attr-defined]

    def bind(self, next_step: Callable[[Any], "Result[U]"]) -> "Result[U]":
        """Chain a fallible step that depends on this value.

        A failure short-circuits and ``next_step`` is not called. A warning
        sticks to the chained result and is concatenated with a later warning.
        If ``next_step`` fails, its failure is returned as is and the earlier
        warning message is dropped.
        """
        if isinstance(self, Err):
            return self
        return _merge(self, next_step(self.value))  # type: ignore[attr-defined]

    async def bind_async(
        self, next_step: Callable[[Any], Awaitable["Result[U]"]]
    ) -> "Result[U]":
        if isinstance(self, Err):
            return self
        return _merge(self, await next_step(self.value))  # type: ignore[attr-defined]

    def on_success(self, action: Callable[[Any], object]) -> "Result[Any]":
        """Run ``action`` with the value when there is one (success or warning)."""
        if not isinstance(self, Err):
            action(self.value)  # type: ignore[attr-defined]
        return self  # type: ignore[return-value]

    def on_warning(self, action: Callable[[str], object]) -> "Result[Any]":
        if isinstance(self, Warn):
            action(self.message)
        return self  # type: ignore[return-value]

    def on_failure(self, action: Callable[[str], object]) -> "Result[Any]":
        if isinstance(self, Err):
            action(self.message)
        return self  # type: ignore[return-value]


@dataclass(frozen=True)
class Ok(_Combinators, Generic[T]):
    """Success result."""

    value: T
    status = Status.SUCCESS

    @property
    def message(self) -> None:
        return None


@dataclass(frozen=True)
class Warn(_Combinators, Generic[T]):
    """Success result with one or more non-fatal messages."""

    value: T
    message: str
    status = Status.WARNING

    def __post_init__(self) -> None:
        if not self.message:
            raise ValueError("A warning result requires a message")


@dataclass(frozen=True)
class Err(_Combinators):
    """Error result."""

    message: str
    status = Status.FAILURE

    def __post_init__(self) -> None:
        if not self.message:
            raise ValueError("A failure result requires a message")


Result = Ok[T] | Warn[T] | Err


def _merge(previous: Ok[Any] | Warn[Any], following: "Result[U]") -> "Result[U]":
    if isinstance(previous, Warn):
        match following:
            case Ok(value):
                return Warn(value, previous.message)
            case Warn(value, message):
                return Warn(value, f"{previous.message}\n{message}")
    return following


def success(value: T = None) -> Ok[T]:  # type: ignore[assignment]
    """Create a success result. Call without arguments for the void form."""
    return Ok(value)


def warning(value: T, *messages: str) -> Warn[T]:
    """Create a warning result; messages are joined with newlines."""
    return Warn(value, _join(messages))


def failure(*messages: str) -> Err:
    """Create a failure result; messages are joined with newlines."""
    return Err(_join(messages))


def to_result(value: T | None, error_message: str = DEFAULT_NULL_MESSAGE) -> "Result[T]":
    """Success for any non-None value (falsy values included), else failure."""
    if value is None:
        return failure(error_message)
    return success(value)


def as_result(obj: Any) -> "Result[Any]":
    """Coerce a bare value into a result: strings become failures."""
    if isinstance(obj, (Ok, Warn, Err)):
        return obj
    if isinstance(obj, str):
        return failure(obj)
    return success(obj)


class PendingResult(Generic[T]):
    """A result whose producer has not completed yet.

    Every combinator awaits the producer and then applies the same logic as
    the resolved result. A pending result can be awaited once.
    """

    def __init__(self, awaitable: Awaitable["Result[T]"]) -> None:
        self._awaitable = awaitable

    def __await__(self) -> Generator[Any, None, "Result[T]"]:
        return self._awaitable.__await__()

    def _then(self, step: Callable[["Result[T]"], Any]) -> "PendingResult[Any]":
        async def resolve() -> "Result[Any]":
            outcome = step(await self._awaitable)
            if inspect.isawaitable(outcome):
                outcome = await outcome
            return outcome

        return PendingResult(resolve())

    def map(self, transform: Callable[[T], U]) -> "PendingResult[U]":
        return self._then(lambda result: result.map(transform))

    def map_async(self, transform: Callable[[T], Awaitable[U]]) -> "PendingResult[U]":
        return self._then(lambda result: result.map_async(transform))

    def bind(self, next_step: Callable[[T], "Result[U]"]) -> "PendingResult[U]":
        return self._then(lambda result: result.bind(next_step))

    def bind_async(
        self, next_step: Callable[[T], Awaitable["Result[U]"]]
    ) -> "PendingResult[U]":
        return self._then(lambda result: result.bind_async(next_step))

    def on_success(self, action: Callable[[T], object]) -> "PendingResult[T]":
        return self._then(lambda result: result.on_success(action))

    def on_warning(self, action: Callable[[str], object]) -> "PendingResult[T]":
        return self._then(lambda result: result.on_warning(action))

    def on_failure(self, action: Callable[[str], object]) -> "PendingResult[T]":
        return self._then(lambda result: result.on_failure(action))

    async def value_or_default(self, default: Any = None) -> Any:
        return (await self).value_or_default(default)


def pending(awaitable: Awaitable["Result[T]"]) -> PendingResult[T]:
    """Wrap a coroutine producing a result so combinators can be chained on it."""
    return PendingResult(awaitable)
