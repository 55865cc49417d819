from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from csaf_retrieval.errors import ValidationError

if TYPE_CHECKING:
    from collections.abc import Iterable


class ValidationResult:
    @property
    def is_failed(self) -> bool:
        return isinstance(self, ValidationFailed)

    @property
    def is_successful(self) -> bool:
        return not self.is_failed


@dataclass(frozen=True)
class ValidationSuccessful(ValidationResult):
    pass


@dataclass(frozen=True)
class ValidationNotApplicable(ValidationSuccessful):
    """The requirement does not apply to the evidence at hand. Counts as a success."""


@dataclass(frozen=True, init=False)
class ValidationFailed(ValidationResult):
    errors: tuple[str, ...]

    def __init__(self, errors: Iterable[str]):
        object.__setattr__(self, "errors", tuple(errors))

    def to_exception(self) -> ValidationError:
        return ValidationError(self.errors)


SUCCESSFUL = ValidationSuccessful()
NOT_APPLICABLE = ValidationNotApplicable()


def failed(*errors: str) -> ValidationFailed:
    return ValidationFailed(errors)


def merge(results: Iterable[ValidationResult]) -> ValidationResult:
    """Failed with the errors of every failed result (in order) if any failed, successful otherwise."""
    errors: list[str] = []
    any_failed = False
    for r in results:
        if isinstance(r, ValidationFailed):
            any_failed = True
            errors.extend(r.errors)
    if any_failed:
        return ValidationFailed(errors)
    return SUCCESSFUL
