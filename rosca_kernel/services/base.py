"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write-side service.  Services receive a SQLAlchemy ``Session``,
    an injected ``Clock`` and the unit of work's ``Outbox``, and persist
    via ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's transaction
      and never commit or roll back themselves.  The caller
      (``rosca_services.PoolOperations`` or a test) owns commit/rollback, so
      a payout, its round advance and its balance update land together.
    - Side effects toward collaborators go through the Outbox only.
"""

from abc import ABC

from sqlalchemy.orm import Session

from rosca_kernel.domain.clock import Clock, SystemClock
from rosca_kernel.domain.outbox import Outbox


class BaseService(ABC):
    """
    Abstract base class for kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.

    Non-goals:
        - Does NOT provide query-only views -- those belong in
          ``rosca_kernel/selectors/``.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        outbox: Outbox | None = None,
    ):
        self.session = session
        self.clock = clock or SystemClock()
        self.outbox = outbox if outbox is not None else Outbox()
