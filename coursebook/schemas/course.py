"""
Course sequence schema for Coursebook.

The course sequence is the canonical previous/next traversal order,
derived from the lesson markers of each document.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


class CourseSequence(BaseModel):
    """Ordered document identifiers. No identifier appears twice."""
    model_config = ConfigDict(frozen=True)

    identifiers: tuple[str, ...] = ()

    @field_validator("identifiers")
    @classmethod
    def no_repeats(cls, v):
        seen = set()
        for identifier in v:
            if identifier in seen:
                raise ValueError(f"Identifier repeats in course sequence: {identifier}")
            seen.add(identifier)
        return v

    def __len__(self) -> int:
        return len(self.identifiers)

    def __contains__(self, identifier: str) -> bool:
        return identifier in self.identifiers

    @property
    def first(self) -> Optional[str]:
        return self.identifiers[0] if self.identifiers else None

    @property
    def last(self) -> Optional[str]:
        return self.identifiers[-1] if self.identifiers else None

    def position(self, identifier: str) -> tuple[int, int]:
        """
        Get position as (current, total).

        Returns (0, total) if the identifier is not in the sequence.
        """
        if identifier not in self.identifiers:
            return (0, len(self.identifiers))
        return (self.identifiers.index(identifier) + 1, len(self.identifiers))

    def previous(self, identifier: str) -> Optional[str]:
        current, _ = self.position(identifier)
        if current <= 1:
            return None
        return self.identifiers[current - 2]

    def next(self, identifier: str) -> Optional[str]:
        current, total = self.position(identifier)
        if current == 0 or current >= total:
            return None
        return self.identifiers[current]
