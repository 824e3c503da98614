"""Source reliability rankings used to break ties when merging attributes.

Higher scores are more trusted. Keys are matched against a record's
``source_key`` exactly first, then by substring containment in table order,
so namespaced keys such as ``county-camden-records`` still resolve.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

DEFAULT_SOURCE_RELIABILITY: dict[str, int] = {
    "attom": 10,
    "county-records": 8,
    "county": 8,
    "tax-records": 7,
    "mls": 6,
    "zillow": 5,
    "redfin": 5,
    "realtor": 5,
    "auction-com": 4,
    "hubzu": 4,
    "foreclosure": 3,
    "classifieds": 2,
}


class SourceReliabilityTable(BaseModel):
    """Immutable source-key to reliability mapping with a default floor."""

    scores: dict[str, int] = Field(default_factory=lambda: dict(DEFAULT_SOURCE_RELIABILITY))
    default: int = 1

    model_config = {"frozen": True}

    @field_validator("scores")
    @classmethod
    def _validate_scores(cls, value: dict[str, int]) -> dict[str, int]:
        normalized: dict[str, int] = {}
        for key, score in value.items():
            if score < 1:
                raise ValueError(f"Reliability for '{key}' must be >= 1")
            normalized[key.strip().lower()] = score
        return normalized

    @field_validator("default")
    @classmethod
    def _validate_default(cls, value: int) -> int:
        if value < 1:
            raise ValueError("Default reliability must be >= 1")
        return value

    def score(self, source_key: str | None) -> int:
        if not source_key:
            return self.default

        key = source_key.strip().lower()
        if key in self.scores:
            return self.scores[key]

        for candidate, score in self.scores.items():
            if candidate in key:
                return score

        return self.default
