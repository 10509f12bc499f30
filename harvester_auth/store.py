from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional, Protocol

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from harvester_auth.errors import Unavailable
from harvester_auth.models import Challenge

logger = logging.getLogger(__name__)

# statements below bypass the identity map; get() hands out detached rows
_NO_SYNC = {"synchronize_session": False}


class ChallengeStore(Protocol):
    def put(
        self,
        subject: str,
        code_hash: str,
        issued_at: datetime,
        expires_at: datetime,
        channel: str = "sms",
    ) -> None:
        ...

    def get(self, subject: str) -> Optional[Challenge]:
        ...

    def delete(self, subject: str, code_hash: Optional[str] = None) -> bool:
        ...

    def record_mismatch(self, subject: str, code_hash: str) -> int:
        ...

    def purge_expired(self, now: datetime) -> int:
        ...


class SqlChallengeStore:
    """Challenge persistence on top of a SQLAlchemy session.

    Every public method commits its own transaction. Database failures are
    raised as ``Unavailable`` so callers can tell them apart from a missing
    challenge.
    """

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _transaction(self, op: str) -> Iterator[None]:
        try:
            yield
            self.db.commit()
        except SQLAlchemyError as exc:
            self._rollback()
            logger.error("challenge store %s failed: %s", op, type(exc).__name__)
            raise Unavailable() from exc

    def _rollback(self) -> None:
        try:
            self.db.rollback()
        except SQLAlchemyError:
            logger.warning("rollback failed", exc_info=True)

    def put(
        self,
        subject: str,
        code_hash: str,
        issued_at: datetime,
        expires_at: datetime,
        channel: str = "sms",
    ) -> None:
        # delete + insert in one transaction; a concurrent put for the same
        # subject can still win the insert, in which case we go again
        for attempt in (1, 2):
            try:
                with self._transaction("put"):
                    self.db.execute(delete(Challenge).where(Challenge.subject == subject), execution_options=_NO_SYNC)
                    self.db.execute(
                        insert(Challenge).values(
                            subject=subject,
                            code_hash=code_hash,
                            issued_at=issued_at,
                            expires_at=expires_at,
                            attempts=0,
                            channel=channel,
                        )
                    )
                return
            except Unavailable as exc:
                if attempt == 2 or not isinstance(exc.__cause__, IntegrityError):
                    raise
                logger.info("concurrent put for same subject, retrying")

    def get(self, subject: str) -> Optional[Challenge]:
        with self._transaction("get"):
            challenge = self.db.scalar(
                select(Challenge)
                .where(Challenge.subject == subject)
                .execution_options(populate_existing=True)
            )
            if challenge is not None:
                # hand out a plain snapshot, not a row the commit would expire
                self.db.expunge(challenge)
        return challenge

    def delete(self, subject: str, code_hash: Optional[str] = None) -> bool:
        stmt = delete(Challenge).where(Challenge.subject == subject)
        if code_hash is not None:
            stmt = stmt.where(Challenge.code_hash == code_hash)
        with self._transaction("delete"):
            result = self.db.execute(stmt, execution_options=_NO_SYNC)
        return result.rowcount > 0

    def record_mismatch(self, subject: str, code_hash: str) -> int:
        with self._transaction("record_mismatch"):
            self.db.execute(
                update(Challenge)
                .where(Challenge.subject == subject, Challenge.code_hash == code_hash)
                .values(attempts=Challenge.attempts + 1),
                execution_options=_NO_SYNC,
            )
            attempts = self.db.scalar(
                select(Challenge.attempts).where(
                    Challenge.subject == subject, Challenge.code_hash == code_hash
                )
            )
        return attempts or 0

    def purge_expired(self, now: datetime) -> int:
        with self._transaction("purge_expired"):
            result = self.db.execute(
                delete(Challenge).where(Challenge.expires_at <= now), execution_options=_NO_SYNC
            )
        return result.rowcount
