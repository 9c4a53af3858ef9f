# src/core/errors.py — v1
"""Error taxonomy shared by every batch job.

Only IdentifierConflict and ExternalServiceFailure are surfaced as item
failures; DuplicateEdge is a no-op from the caller's perspective and
UnresolvedContradiction is reported, never raised across a job boundary.
"""

from __future__ import annotations


class PeopleGraphError(Exception):
    """Base class for engine errors."""


class NotFound(PeopleGraphError):
    """External search or a store lookup returned nothing."""

    def __init__(self, what: str, key: str):
        self.what = what
        self.key = key
        super().__init__(f"{what} not found: {key!r}")


class AmbiguousMatch(PeopleGraphError):
    """Fuzzy matching produced no single confident candidate."""

    def __init__(self, name: str, candidate_ids: list[str]):
        self.name = name
        self.candidate_ids = candidate_ids
        super().__init__(
            f"Ambiguous match for {name!r}: {len(candidate_ids)} candidates"
        )


class IdentifierConflict(PeopleGraphError):
    """External id already attached to a differently-named entity."""

    def __init__(
        self,
        external_id: str,
        existing_id: str,
        existing_name: str,
        candidate_name: str,
    ):
        self.external_id = external_id
        self.existing_id = existing_id
        self.existing_name = existing_name
        self.candidate_name = candidate_name
        super().__init__(
            f"External id {external_id} belongs to {existing_name!r} "
            f"({existing_id}), not {candidate_name!r}"
        )


class DuplicateEdge(PeopleGraphError):
    """An edge with the same (source, target, type) already exists."""

    def __init__(self, existing_id: str, key: tuple[str, str, str]):
        self.existing_id = existing_id
        self.key = key
        super().__init__(f"Duplicate edge {key} (existing: {existing_id})")


class UnresolvedContradiction(PeopleGraphError):
    """Antisymmetric cycle with no ground-truth override."""

    def __init__(self, person_a: str, person_b: str):
        self.person_a = person_a
        self.person_b = person_b
        super().__init__(
            f"Contradictory advisor edges between {person_a} and {person_b}"
        )


class ExternalServiceFailure(PeopleGraphError):
    """An outbound call failed after all retries."""

    def __init__(self, operation: str, attempts: int, last_error: Exception):
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"{operation} failed after {attempts} attempts: {last_error}"
        )
