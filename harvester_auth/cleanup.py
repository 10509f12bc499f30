# harvester_auth/cleanup.py
# Purge expired challenges. Run periodically, e.g. from cron:
#   python -m harvester_auth.cleanup
from __future__ import annotations

import logging

from harvester_auth.config import settings
from harvester_auth.db import SessionLocal, engine
from harvester_auth.models import Base, utcnow_naive
from harvester_auth.store import SqlChallengeStore

logger = logging.getLogger(__name__)


def purge_expired_challenges(db) -> int:
    removed = SqlChallengeStore(db).purge_expired(utcnow_naive())
    logger.info("purged %d expired otp challenges", removed)
    return removed


def main() -> int:
    logging.basicConfig(level=settings.LOG_LEVEL.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        purge_expired_challenges(db)
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
