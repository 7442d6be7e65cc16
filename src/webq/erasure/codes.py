"""Single-use, time-limited verification codes for account erasure."""

import secrets
from datetime import timedelta
from uuid import UUID

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from webq.config.settings import ErasureConfig
from webq.db.models.erasure import DeletionVerificationCode
from webq.erasure.hashing import hashes_match, keyed_hash
from webq.utils.clock import Clock, utc_now

logger = structlog.get_logger()


class VerificationCodeStore:
    """Issues and validates account erasure codes.

    Only the newest unused code of a target can validate; issuing a new
    code supersedes every older one. A code is consumed by a conditional
    update, so of two concurrent validations at most one succeeds.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config: ErasureConfig,
        clock: Clock = utc_now,
    ):
        self._session_factory = session_factory
        self._config = config
        self._clock = clock

    def _hash(self, target_id: UUID, code: str) -> str:
        return keyed_hash(self._config.secret_key, str(target_id), code)

    async def issue(self, target_id: UUID) -> str:
        """Issue a new code for ``target_id``.

        Args:
            target_id: Account the code authorizes erasing

        Returns:
            The plain code, to be delivered to the account holder out of band
        """
        now = self._clock()
        code = secrets.token_urlsafe(self._config.code_bytes)

        async with self._session_factory() as session, session.begin():
            await session.execute(
                update(DeletionVerificationCode)
                .where(
                    DeletionVerificationCode.target_id == target_id,
                    DeletionVerificationCode.used.is_(False),
                    DeletionVerificationCode.superseded_at.is_(None),
                )
                .values(superseded_at=now)
                .execution_options(synchronize_session=False)
            )
            session.add(
                DeletionVerificationCode(
                    target_id=target_id,
                    code_hash=self._hash(target_id, code),
                    created_at=now,
                    expires_at=now + timedelta(seconds=self._config.code_ttl_seconds),
                    used=False,
                )
            )

        logger.info("verification_code_issued", target_id=str(target_id))
        return code

    async def validate_and_consume(self, target_id: UUID, code: str) -> bool:
        """Consume ``code`` if it is the target's live code.

        Wrong, expired, superseded and already-used codes are rejected
        identically.

        Returns:
            True exactly once per issued code
        """
        now = self._clock()

        async with self._session_factory() as session, session.begin():
            result = await session.execute(
                select(DeletionVerificationCode)
                .where(
                    DeletionVerificationCode.target_id == target_id,
                    DeletionVerificationCode.used.is_(False),
                    DeletionVerificationCode.superseded_at.is_(None),
                )
                .order_by(
                    DeletionVerificationCode.created_at.desc(),
                    DeletionVerificationCode.id.desc(),
                )
                .limit(1)
            )
            record = result.scalar_one_or_none()

            if record is None or now > record.expires_at:
                return False
            if not hashes_match(record.code_hash, self._hash(target_id, code)):
                return False

            consumed = await session.execute(
                update(DeletionVerificationCode)
                .where(
                    DeletionVerificationCode.id == record.id,
                    DeletionVerificationCode.used.is_(False),
                )
                .values(used=True, used_at=now)
                .execution_options(synchronize_session=False)
            )

        if consumed.rowcount != 1:
            logger.warning("verification_code_race_lost", target_id=str(target_id))
            return False

        logger.info("verification_code_consumed", target_id=str(target_id))
        return True

    async def purge(self, target_id: UUID) -> int:
        """Delete every code row of ``target_id`` once its erasure completed."""
        async with self._session_factory() as session, session.begin():
            result = await session.execute(
                delete(DeletionVerificationCode).where(
                    DeletionVerificationCode.target_id == target_id
                )
            )
        return result.rowcount or 0
