from __future__ import annotations

from csaf_retrieval.validation.requirement import AllOf, OneOf, Requirement, all_of, none, one_of
from csaf_retrieval.validation.result import (
    NOT_APPLICABLE,
    SUCCESSFUL,
    ValidationFailed,
    ValidationNotApplicable,
    ValidationResult,
    ValidationSuccessful,
    merge,
)
from csaf_retrieval.validation.roles import AGGREGATOR, LISTER, PROVIDER, PUBLISHER, TRUSTED_PROVIDER, Role

__all__ = [
    "AGGREGATOR",
    "LISTER",
    "NOT_APPLICABLE",
    "PROVIDER",
    "PUBLISHER",
    "SUCCESSFUL",
    "TRUSTED_PROVIDER",
    "AllOf",
    "OneOf",
    "Requirement",
    "Role",
    "ValidationFailed",
    "ValidationNotApplicable",
    "ValidationResult",
    "ValidationSuccessful",
    "all_of",
    "merge",
    "none",
    "one_of",
]
