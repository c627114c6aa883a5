"""
Identifier Allocation

Human-readable identifiers: a fixed prefix per kind followed by a zero-padded
random suffix (TXN0042, APP1337, NOT0007, ACC0815).

The suffix space is small, so collisions are expected. `allocate` checks the
owning repository before returning a candidate; `insert_with_id` additionally
treats a primary-key collision at insert time as a retryable miss, which
closes the window between the existence check and the write.
"""

import random
from enum import Enum
from typing import Callable, Dict, Optional, TypeVar

from .errors import DuplicateRecordError, ResourceExhaustedError
from .logging_config import get_logger, log_action

T = TypeVar("T")


class IdentifierKind(Enum):
    """Identifier families and their prefixes"""
    TRANSACTION = "TXN"
    APPROVAL = "APP"
    NOTIFICATION = "NOT"
    ACCOUNT = "ACC"

    @property
    def prefix(self) -> str:
        return self.value


class IdentifierAllocator:
    """
    Allocates collision-free identifiers.

    Args:
        exists_checks: per-kind callable returning True when an id is taken
        rng: random generator; pass a seeded ``random.Random`` for determinism
        suffix_digits: width of the numeric suffix
        max_attempts: candidates tried before giving up
    """

    def __init__(
        self,
        exists_checks: Dict[IdentifierKind, Callable[[str], bool]],
        rng: Optional[random.Random] = None,
        suffix_digits: int = 4,
        max_attempts: int = 50,
    ):
        if suffix_digits < 1:
            raise ValueError("suffix_digits must be at least 1")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.exists_checks = dict(exists_checks)
        self.rng = rng or random.Random()
        self.suffix_digits = suffix_digits
        self.max_attempts = max_attempts
        self.logger = get_logger("accounttrack.identifiers")

    def _candidate(self, kind: IdentifierKind) -> str:
        suffix = self.rng.randrange(0, 10 ** self.suffix_digits)
        return f"{kind.prefix}{suffix:0{self.suffix_digits}d}"

    def _exists(self, kind: IdentifierKind, candidate: str) -> bool:
        check = self.exists_checks.get(kind)
        if check is None:
            raise ValueError(f"No existence check registered for {kind.name}")
        return check(candidate)

    def _exhausted(self, kind: IdentifierKind) -> ResourceExhaustedError:
        log_action(
            self.logger, "error",
            f"No free {kind.name.lower()} identifier after {self.max_attempts} attempts",
            action="allocate_identifier", resource=kind.name.lower(),
        )
        return ResourceExhaustedError(
            f"Could not allocate a unique {kind.name.lower()} identifier "
            f"after {self.max_attempts} attempts",
            resource=kind.name.lower(),
        )

    def allocate(self, kind: IdentifierKind) -> str:
        """Return an identifier not currently present in the owning repository"""
        for _ in range(self.max_attempts):
            candidate = self._candidate(kind)
            if not self._exists(kind, candidate):
                return candidate
        raise self._exhausted(kind)

    def insert_with_id(self, kind: IdentifierKind, build: Callable[[str], T],
                       insert: Callable[[T], None]) -> T:
        """
        Allocate an id, build the record and insert it.

        A DuplicateRecordError from `insert` (a concurrent writer took the id
        after the existence check) consumes one attempt and the loop retries.
        """
        for _ in range(self.max_attempts):
            candidate = self._candidate(kind)
            if self._exists(kind, candidate):
                continue
            record = build(candidate)
            try:
                insert(record)
            except DuplicateRecordError:
                self.logger.debug("Identifier %s taken at insert time, retrying", candidate)
                continue
            return record
        raise self._exhausted(kind)
