from __future__ import annotations

from dataclasses import dataclass

import pytest

from csaf_retrieval.context import RetrievalContext
from csaf_retrieval.validation.requirement import AllOf, OneOf, Requirement, all_of, none, one_of
from csaf_retrieval.validation.result import NOT_APPLICABLE, SUCCESSFUL, ValidationFailed, ValidationResult, failed


@dataclass(frozen=True)
class Fixed(Requirement):
    result: ValidationResult

    def check(self, ctx: RetrievalContext) -> ValidationResult:
        return self.result


class Counting(Requirement):
    def __init__(self, result: ValidationResult):
        self.result = result
        self.calls = 0

    def check(self, ctx: RetrievalContext) -> ValidationResult:
        self.calls += 1
        return self.result


OK = Fixed(SUCCESSFUL)
NA = Fixed(NOT_APPLICABLE)


def fails(*errors: str) -> Requirement:
    return Fixed(failed(*errors))


@pytest.fixture()
def ctx():
    return RetrievalContext()


class TestAllOf:
    def test_all_successful(self, ctx):
        assert all_of(OK, NA, OK).check(ctx) == SUCCESSFUL

    def test_errors_of_every_failing_child(self, ctx):
        result = all_of(fails("a"), OK, fails("b", "c")).check(ctx)
        assert result == ValidationFailed(["a", "b", "c"])

    def test_does_not_short_circuit(self, ctx):
        children = [Counting(failed("first")), Counting(SUCCESSFUL), Counting(failed("last"))]
        AllOf(tuple(children)).check(ctx)
        assert [c.calls for c in children] == [1, 1, 1]

    def test_plus_builds_all_of(self, ctx):
        combined = OK + fails("x")
        assert isinstance(combined, AllOf)
        assert combined.check(ctx) == ValidationFailed(["x"])


class TestOneOf:
    def test_one_success_is_enough(self, ctx):
        assert one_of(fails("a"), OK, fails("b")).check(ctx) == SUCCESSFUL

    def test_not_applicable_counts_as_success(self, ctx):
        assert one_of(fails("a"), NA).check(ctx) == SUCCESSFUL

    def test_all_failed_collects_every_error(self, ctx):
        assert one_of(fails("a"), fails("b"), fails("c")).check(ctx) == ValidationFailed(["a", "b", "c"])

    def test_empty_is_successful(self, ctx):
        assert one_of().check(ctx) == SUCCESSFUL

    def test_evaluates_every_child(self, ctx):
        children = [Counting(SUCCESSFUL), Counting(failed("x"))]
        OneOf(tuple(children)).check(ctx)
        assert [c.calls for c in children] == [1, 1]

    def test_or_builds_one_of(self, ctx):
        assert isinstance(OK | fails("x"), OneOf)
        assert (fails("x") | OK).check(ctx) == SUCCESSFUL
        assert (fails("x") | fails("y")).check(ctx) == ValidationFailed(["x", "y"])


def test_none_always_succeeds(ctx):
    assert none().check(ctx) == SUCCESSFUL
    assert none() is none()


def test_nested_trees(ctx):
    tree = all_of(OK, one_of(fails("a"), all_of(OK, NA))) + (fails("b") | fails("c"))
    assert tree.check(ctx) == ValidationFailed(["b", "c"])


def test_evaluation_is_repeatable(ctx):
    tree = all_of(fails("a"), one_of(fails("b"), fails("c")))
    assert tree.check(ctx) == tree.check(RetrievalContext())
