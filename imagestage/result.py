"""A small success-or-error container used for fluent helper chains.

Every public :class:`~imagestage.image.ImageHelper` operation returns a
:class:`Result`.  Chaining with :meth:`Result.and_then` runs the next step
only while the chain is still successful; once a step fails, the error is
carried through untouched and no further side effects happen::

    open_image("photo.jpg").and_then(lambda img: img.resize_fit(400, 400)).and_then(
        lambda img: img.save_png("thumb.png")
    )
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

from .errors import ImageError

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True)
class Result(Generic[T]):
    value: Optional[T] = None
    error: Optional[ImageError] = None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: ImageError) -> "Result[T]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def __bool__(self) -> bool:
        return self.ok

    def and_then(self, func: Callable[[T], "Result[U]"]) -> "Result[U]":
        """Run ``func`` with the value if successful, otherwise pass the error on."""

        if self.error is not None:
            return Result(error=self.error)
        return func(self.value)  # type: ignore[arg-type]

    def map(self, func: Callable[[T], U]) -> "Result[U]":
        if self.error is not None:
            return Result(error=self.error)
        return Result(value=func(self.value))  # type: ignore[arg-type]

    def unwrap(self) -> T:
        """Return the value or raise the carried error."""

        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]

    def unwrap_or(self, default: U) -> "T | U":
        if self.error is not None:
            return default
        return self.value  # type: ignore[return-value]


__all__ = ["Result"]
