from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import TYPE_CHECKING

from csaf_retrieval.validation.result import SUCCESSFUL, ValidationFailed, ValidationResult, merge

if TYPE_CHECKING:
    from csaf_retrieval.context import RetrievalContext


class Requirement(abc.ABC):
    """
    A check over the evidence of one fetch. Requirements compose into immutable trees:
    `a + b` holds when both hold, `a | b` when at least one does.
    """

    @abc.abstractmethod
    def check(self, ctx: RetrievalContext) -> ValidationResult:
        raise NotImplementedError

    def __add__(self, other: Requirement) -> Requirement:
        return AllOf((self, other))

    def __or__(self, other: Requirement) -> Requirement:
        return OneOf((self, other))


@dataclass(frozen=True)
class AllOf(Requirement):
    requirements: tuple[Requirement, ...]

    def check(self, ctx: RetrievalContext) -> ValidationResult:
        # every child is evaluated, there is no short circuit
        return merge([r.check(ctx) for r in self.requirements])


@dataclass(frozen=True)
class OneOf(Requirement):
    """Successful if at least one child is not failed (not applicable counts as success)."""

    requirements: tuple[Requirement, ...]

    def check(self, ctx: RetrievalContext) -> ValidationResult:
        results = [r.check(ctx) for r in self.requirements]
        if not results or any(not isinstance(r, ValidationFailed) for r in results):
            return SUCCESSFUL
        return merge(results)


@dataclass(frozen=True)
class _NoRequirement(Requirement):
    def check(self, ctx: RetrievalContext) -> ValidationResult:
        return SUCCESSFUL


def none() -> Requirement:
    return _NO_REQUIREMENT


def all_of(*requirements: Requirement) -> Requirement:
    return AllOf(tuple(requirements))


def one_of(*requirements: Requirement) -> Requirement:
    return OneOf(tuple(requirements))


_NO_REQUIREMENT = _NoRequirement()
