"""
Typed Exception Hierarchy for the Rosca Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

A savings circle moves members' money. Callers must be able to tell "you
already contributed" apart from "the round is closed" without parsing
message text. Every error therefore has:
  1. A TYPED exception class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA attributes (pool id, round number, member id, ...)

Example:
    try:
        ledger.record_contribution(pool_id, member_id, round_number, "cash")
    except AlreadyContributedError as e:
        return failure(code=e.code, member=e.member_id, round=e.round_number)

Kernel services raise these exceptions. The outer facade
(``rosca_services.pool_operations``) converts them into structured
``OperationResult`` failures so they never cross the engine boundary.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    RoscaKernelError (base)
    |
    +-- ValidationError
    |   +-- InvalidContributionAmountError
    |   +-- InvalidPositionError
    |   +-- RosterFullError
    |   +-- DuplicateMemberError
    |   +-- RecipientExemptError
    |   +-- InvalidReorderError
    |
    +-- NotFoundError
    |   +-- PoolNotFoundError
    |   +-- MemberNotFoundError
    |
    +-- DuplicateActionError
    |   +-- AlreadyContributedError
    |   +-- AlreadyPaidError
    |
    +-- ConcurrencyError
    |   +-- ConflictError
    |
    +-- StateError
    |   +-- PoolNotActiveError
    |   +-- PoolAlreadyStartedError
    |   +-- RoundNotOpenError
    |   +-- RoundClosedError
    |   +-- ContributionNotConfirmedError
    |   +-- RoundIncompleteError
    |   +-- EarlyPayoutNotAllowedError
    |   +-- AdminRemovalError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                        | When Raised
-------------|-----------------------------|-----------------------------------
Validation   | VALIDATION_ERROR            | Input violates a pool rule
             | INVALID_CONTRIBUTION_AMOUNT | Amount outside configured bounds
             | INVALID_POSITION            | Position collision / out of range
             | ROSTER_FULL                 | max_members reached
             | DUPLICATE_MEMBER            | Email already on the roster
             | RECIPIENT_EXEMPT            | Round recipient tried to contribute
             | INVALID_REORDER             | New order is not a permutation
-------------|-----------------------------|-----------------------------------
Not found    | POOL_NOT_FOUND              | Unknown pool id
             | MEMBER_NOT_FOUND            | Unknown member id / email
-------------|-----------------------------|-----------------------------------
Duplicate    | ALREADY_CONTRIBUTED         | Contribution already confirmed
             | ALREADY_PAID                | Round already has a payout
-------------|-----------------------------|-----------------------------------
Concurrency  | CONFLICT                    | Pool modified concurrently
-------------|-----------------------------|-----------------------------------
State        | POOL_NOT_ACTIVE             | Pool completed or cancelled
             | POOL_ALREADY_STARTED        | start_pool on a running pool
             | ROUND_NOT_OPEN              | Round is not the current round
             | ROUND_CLOSED                | Round's payout already issued
             | CONTRIBUTION_NOT_CONFIRMED  | Undo of a non-confirmed record
             | ROUND_INCOMPLETE            | Premature payout attempt
             | EARLY_PAYOUT_NOT_ALLOWED    | Early-payout preconditions fail
             | ADMIN_REMOVAL               | Attempt to remove the pool admin
-------------|-----------------------------|-----------------------------------
Immutability | IMMUTABILITY_VIOLATION      | Update/delete of a payout record

===============================================================================
DESIGN DECISIONS
===============================================================================

1. WHY SEPARATE ERROR CATEGORIES?
   The facade maps categories to behavior:
   - ValidationError / NotFoundError / DuplicateActionError -> user-facing
   - ConcurrencyError -> auto-retry with backoff
   - StateError -> user-facing, the pool is in the wrong phase
   - ImmutabilityError -> log as an integrity alert

2. WHY STORE CONTEXT AS ATTRIBUTES?
   The structured log formatter copies public exception attributes into
   ``exc_*`` fields. Attributes survive serialization; message strings
   do not.
"""


class RoscaKernelError(Exception):
    """
    Base exception for all rosca kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "ROSCA_KERNEL_ERROR"


# Validation exceptions


class ValidationError(RoscaKernelError):
    """Input violates a pool rule."""

    code: str = "VALIDATION_ERROR"


class InvalidContributionAmountError(ValidationError):
    """Contribution amount is outside the configured bounds."""

    code: str = "INVALID_CONTRIBUTION_AMOUNT"

    def __init__(self, amount: int, minimum: int, maximum: int):
        self.amount = amount
        self.minimum = minimum
        self.maximum = maximum
        super().__init__(
            f"Contribution amount {amount} must be between {minimum} and {maximum}"
        )


class InvalidPositionError(ValidationError):
    """A payout position collides with another member or is out of range."""

    code: str = "INVALID_POSITION"

    def __init__(self, pool_id: str, position: int, reason: str):
        self.pool_id = pool_id
        self.position = position
        self.reason = reason
        super().__init__(f"Position {position} in pool {pool_id}: {reason}")


class RosterFullError(ValidationError):
    """The pool already has max_members active members."""

    code: str = "ROSTER_FULL"

    def __init__(self, pool_id: str, max_members: int):
        self.pool_id = pool_id
        self.max_members = max_members
        super().__init__(
            f"Pool {pool_id} has reached its maximum of {max_members} members"
        )


class DuplicateMemberError(ValidationError):
    """The email is already used by an active member of the pool."""

    code: str = "DUPLICATE_MEMBER"

    def __init__(self, pool_id: str, email: str):
        self.pool_id = pool_id
        self.email = email
        super().__init__(f"{email} is already a member of pool {pool_id}")


class RecipientExemptError(ValidationError):
    """The round's recipient does not contribute in that round."""

    code: str = "RECIPIENT_EXEMPT"

    def __init__(self, pool_id: str, member_id: str, round_number: int):
        self.pool_id = pool_id
        self.member_id = member_id
        self.round_number = round_number
        super().__init__(
            "You are the recipient for this round and do not need to contribute"
        )


class InvalidReorderError(ValidationError):
    """The requested order is not a permutation of the active roster."""

    code: str = "INVALID_REORDER"

    def __init__(self, pool_id: str, reason: str):
        self.pool_id = pool_id
        self.reason = reason
        super().__init__(f"Invalid reorder for pool {pool_id}: {reason}")


# Lookup exceptions


class NotFoundError(RoscaKernelError):
    """Referenced entity does not exist."""

    code: str = "NOT_FOUND"


class PoolNotFoundError(NotFoundError):
    """Pool id does not exist."""

    code: str = "POOL_NOT_FOUND"

    def __init__(self, pool_id: str):
        self.pool_id = pool_id
        super().__init__(f"Pool not found: {pool_id}")


class MemberNotFoundError(NotFoundError):
    """No active member of the pool matches the identifier."""

    code: str = "MEMBER_NOT_FOUND"

    def __init__(self, pool_id: str, identifier: str):
        self.pool_id = pool_id
        self.identifier = identifier
        super().__init__(f"Member {identifier} not found in pool {pool_id}")


# Duplicate-action exceptions


class DuplicateActionError(RoscaKernelError):
    """The action was already performed."""

    code: str = "DUPLICATE_ACTION"


class AlreadyContributedError(DuplicateActionError):
    """The member's contribution for the round is already confirmed."""

    code: str = "ALREADY_CONTRIBUTED"

    def __init__(self, pool_id: str, member_id: str, round_number: int):
        self.pool_id = pool_id
        self.member_id = member_id
        self.round_number = round_number
        super().__init__("You have already contributed for this round")


class AlreadyPaidError(DuplicateActionError):
    """A payout transaction already exists for the round."""

    code: str = "ALREADY_PAID"

    def __init__(self, pool_id: str, round_number: int):
        self.pool_id = pool_id
        self.round_number = round_number
        super().__init__(
            f"Payout has already been processed for round {round_number}"
        )


# Concurrency exceptions


class ConcurrencyError(RoscaKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConflictError(ConcurrencyError):
    """The pool was modified by another transaction; retry the operation."""

    code: str = "CONFLICT"

    def __init__(self, pool_id: str, detail: str = ""):
        self.pool_id = pool_id
        self.detail = detail
        super().__init__(
            f"Pool {pool_id} was modified by another transaction"
            + (f": {detail}" if detail else "")
        )


# State exceptions


class StateError(RoscaKernelError):
    """The pool or round is in the wrong phase for the operation."""

    code: str = "STATE_ERROR"


class PoolNotActiveError(StateError):
    """Pool is completed or cancelled."""

    code: str = "POOL_NOT_ACTIVE"

    def __init__(self, pool_id: str, status: str):
        self.pool_id = pool_id
        self.status = status
        super().__init__(f"Pool {pool_id} is not active (status: {status})")


class PoolAlreadyStartedError(StateError):
    """Pool has already left the not-started phase."""

    code: str = "POOL_ALREADY_STARTED"

    def __init__(self, pool_id: str, current_round: int):
        self.pool_id = pool_id
        self.current_round = current_round
        super().__init__(
            f"Pool {pool_id} has already started (round {current_round})"
        )


class RoundNotOpenError(StateError):
    """The round is not the pool's current round."""

    code: str = "ROUND_NOT_OPEN"

    def __init__(self, pool_id: str, round_number: int, current_round: int):
        self.pool_id = pool_id
        self.round_number = round_number
        self.current_round = current_round
        super().__init__(
            f"Round {round_number} is not open in pool {pool_id} "
            f"(current round: {current_round})"
        )


class RoundClosedError(StateError):
    """The round's payout has been issued; its records are frozen."""

    code: str = "ROUND_CLOSED"

    def __init__(self, pool_id: str, round_number: int):
        self.pool_id = pool_id
        self.round_number = round_number
        super().__init__(f"Round {round_number} of pool {pool_id} is closed")


class ContributionNotConfirmedError(StateError):
    """Only confirmed contributions can be undone."""

    code: str = "CONTRIBUTION_NOT_CONFIRMED"

    def __init__(self, pool_id: str, member_id: str, round_number: int, status: str):
        self.pool_id = pool_id
        self.member_id = member_id
        self.round_number = round_number
        self.status = status
        super().__init__(
            f"Contribution for round {round_number} is {status}, not confirmed"
        )


class RoundIncompleteError(StateError):
    """Payout attempted before every contribution was confirmed."""

    code: str = "ROUND_INCOMPLETE"

    def __init__(self, pool_id: str, round_number: int, missing: list[str]):
        self.pool_id = pool_id
        self.round_number = round_number
        self.missing = missing
        super().__init__(
            f"Round {round_number} of pool {pool_id} is missing "
            f"{len(missing)} contribution(s)"
        )


class EarlyPayoutNotAllowedError(StateError):
    """Early payout preconditions are not met."""

    code: str = "EARLY_PAYOUT_NOT_ALLOWED"

    def __init__(self, pool_id: str, reason: str, missing: list[str] | None = None):
        self.pool_id = pool_id
        self.reason = reason
        self.missing = missing or []
        super().__init__(reason)


class AdminRemovalError(StateError):
    """The pool admin cannot be removed."""

    code: str = "ADMIN_REMOVAL"

    def __init__(self, pool_id: str, member_id: str):
        self.pool_id = pool_id
        self.member_id = member_id
        super().__init__("Cannot remove the pool admin")


# Immutability exceptions


class ImmutabilityError(RoscaKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an immutable record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
