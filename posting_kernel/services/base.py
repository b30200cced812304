"""
BaseService -- common constructor for kernel services.

Services receive a SQLAlchemy ``Session`` and persist through
``session.flush()``; they never commit or roll back the caller's
transaction.  Multi-step writes that must be all-or-nothing run inside a
SAVEPOINT (``session.begin_nested()``).
"""

from abc import ABC

from sqlalchemy.orm import Session

from posting_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for write-side services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()`` on the outer transaction.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    @property
    def session(self) -> Session:
        return self._session

    @property
    def clock(self) -> Clock:
        return self._clock
