"""Two-phase execution of roster operations.

Each operation is split into a pre-fetch step, which reads whatever it needs
with ordinary reads and queries and returns an immutable plan, and a commit
step, which runs inside a Firestore transaction, re-reads the documents it is
about to write, checks the plan still holds and then writes. The pair is
retried as a whole when the plan went stale or the transaction was aborted by
contention.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, TypeVar

from firebase_admin import firestore
from google.api_core.exceptions import Aborted

from padelhub.constants import DEFAULT_MAX_ATTEMPTS
from padelhub.errors import ConcurrencyConflictError, StaleReadError

from .utils import config_value

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.transaction import Transaction

P = TypeVar("P")
R = TypeVar("R")

_COMMIT_FAILED_PREFIX = "Failed to commit transaction"


@dataclass(frozen=True)
class Settled:
    """A pre-fetch outcome that needs no commit, such as a repeated withdraw."""

    result: Any


def is_contention(error: BaseException) -> bool:
    """Return True if the error means the transaction lost a write race."""
    if isinstance(error, Aborted):
        return True
    if isinstance(error, ValueError):
        # With max_attempts=1 the client wraps the final Aborted in a ValueError
        if isinstance(error.__cause__, Aborted):
            return True
        return str(error).startswith(_COMMIT_FAILED_PREFIX)
    return False


def max_attempts() -> int:
    """Return the configured retry bound for roster operations."""
    return int(config_value("ROSTER_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS))


def run_roster_operation(
    db: Client,
    name: str,
    prefetch: Callable[[], P | Settled],
    commit: Callable[[Transaction, P], R],
    attempts: int | None = None,
) -> R:
    """Run prefetch then commit, retrying both until the commit lands.

    Precondition errors raised by either phase propagate immediately. Stale
    plans and aborted transactions are retried up to ``attempts`` times, after
    which ConcurrencyConflictError is raised.
    """
    attempts = attempts or max_attempts()
    for attempt in range(1, attempts + 1):
        plan = prefetch()
        if isinstance(plan, Settled):
            return plan.result

        transaction = db.transaction(max_attempts=1)
        try:
            return firestore.transactional(commit)(transaction, plan)
        except StaleReadError as e:
            logging.warning(
                f"Roster operation {name} found stale data on attempt "
                f"{attempt}/{attempts}: {e}"
            )
        except (Aborted, ValueError) as e:
            if not is_contention(e):
                raise
            logging.warning(
                f"Roster operation {name} hit contention on attempt "
                f"{attempt}/{attempts}: {e}"
            )

    logging.error(f"Roster operation {name} gave up after {attempts} attempts")
    raise ConcurrencyConflictError(name, attempts)
