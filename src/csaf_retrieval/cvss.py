from __future__ import annotations

import enum
from dataclasses import dataclass
from decimal import Decimal

from cvss import CVSS2, CVSS3
from cvss.exceptions import CVSSError


class CvssError(ValueError):
    pass


class Severity(str, enum.Enum):
    NONE = "NONE"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


def to_severity(score: float) -> Severity:
    if score < 0 or score > 10:
        raise CvssError(f"score out of range: {score}")
    if score == 0:
        return Severity.NONE
    if score < 4:
        return Severity.LOW
    if score < 7:
        return Severity.MEDIUM
    if score < 9:
        return Severity.HIGH
    return Severity.CRITICAL


@dataclass(frozen=True)
class CvssScores:
    version: str
    vector: str
    base_score: float
    temporal_score: float
    environmental_score: float

    @property
    def base_severity(self) -> Severity:
        return to_severity(self.base_score)

    @property
    def temporal_severity(self) -> Severity:
        return to_severity(self.temporal_score)

    @property
    def environmental_severity(self) -> Severity:
        return to_severity(self.environmental_score)


def _score(value: Decimal) -> float:
    return float(value.quantize(Decimal("0.1")))


def calculate(vector: str) -> CvssScores:
    """
    Score a CVSS v3.x (``CVSS:3.0/...``, ``CVSS:3.1/...``) or v2 vector.

    Raises:
        CvssError if the vector is malformed.

    """
    vector = vector.strip()
    try:
        if vector.startswith("CVSS:3"):
            cvss_obj: CVSS2 | CVSS3 = CVSS3(vector)
            version = vector.split("/", 1)[0].removeprefix("CVSS:")
        else:
            cvss_obj = CVSS2(vector.removeprefix("(").removesuffix(")"))
            version = "2.0"
    except CVSSError as e:
        raise CvssError(f"invalid CVSS vector {vector!r}: {e}") from e

    base, temporal, environmental = cvss_obj.scores()
    return CvssScores(
        version=version,
        vector=vector,
        base_score=_score(base),
        temporal_score=_score(temporal),
        environmental_score=_score(environmental),
    )


def base_score(vector: str) -> float:
    return calculate(vector).base_score
