"""
Result Partitioner Module.

Groups collected outcomes into per-Test-Plan batches before they are
imported into Xray. Only outcomes carrying a well-formed external Test key
take part. A Test key may appear at most once per run; a repeat aborts the
whole pass so that no partial set of executions is created.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Set

from loguru import logger

from xray_reporter.collector import TestOutcome, is_valid_key

__all__ = ["PartitionError", "DuplicateKeyError", "is_valid_key", "partition"]


class PartitionError(Exception):
    """Raised when collected outcomes cannot be grouped for submission."""


class DuplicateKeyError(PartitionError):
    """Two eligible outcomes carry the same external Test key."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Two tests have the same Test Issue key, {key}")
        self.key = key


def partition(outcomes: Iterable[TestOutcome]) -> Dict[Optional[str], List[TestOutcome]]:
    """
    Group outcomes by their external Test Plan key.

    Outcomes without a valid Test key are ignored. Skipped outcomes still
    count toward duplicate detection but are left out of the groups.
    Outcomes without a valid Plan key land in the `None` group.

    Args:
        outcomes: Outcomes in collection order.

    Returns:
        Plan key -> outcomes, in order of first appearance. Relative order
        inside each group follows collection order.

    Raises:
        DuplicateKeyError: On the first repeated Test key.
    """
    groups: Dict[Optional[str], List[TestOutcome]] = {}
    seen_keys: Set[str] = set()

    for outcome in outcomes:
        test_key = outcome.test_key
        if test_key is None:
            continue

        if test_key in seen_keys:
            logger.error(f"Duplicate Test key {test_key} at outcome ({outcome.sequence})")
            raise DuplicateKeyError(test_key)
        seen_keys.add(test_key)

        if outcome.info.skipped:
            continue

        groups.setdefault(outcome.plan_key, []).append(outcome)

    logger.debug(
        f"Partitioned {sum(len(g) for g in groups.values())} outcome(s) "
        f"into {len(groups)} group(s): {list(groups)}"
    )
    return groups
