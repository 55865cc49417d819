from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Either a successful value or the exception that prevented producing one.

    Pipeline stages never raise for per-item failures, they yield a failed Result instead so that
    one unreachable document cannot suppress the results of any other.
    """

    value: T | None = None
    error: BaseException | None = None

    @classmethod
    def success(cls, value: T) -> Result[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: BaseException) -> Result[T]:
        return cls(error=error)

    @classmethod
    def of(cls, fn: Callable[..., T], *args: Any, **kwargs: Any) -> Result[T]:
        try:
            return cls.success(fn(*args, **kwargs))
        except Exception as e:
            return cls.failure(e)

    @property
    def is_success(self) -> bool:
        return self.error is None

    @property
    def is_failure(self) -> bool:
        return self.error is not None

    def exception(self) -> BaseException | None:
        return self.error

    def get_or_none(self) -> T | None:
        return self.value if self.is_success else None

    def get_or_raise(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]

    def map(self, fn: Callable[[T], U]) -> Result[U]:
        if self.error is not None:
            return Result.failure(self.error)
        return Result.of(fn, self.value)

    def __repr__(self) -> str:
        if self.error is not None:
            return f"Result.failure({self.error!r})"
        return f"Result.success({self.value!r})"
