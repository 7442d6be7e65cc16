"""Human-verification challenges with progressive lockout.

Anonymous visitors prove they are human by answering a small arithmetic
question. State is keyed by a server-derived fingerprint and stored in
the database, so a lockout holds across reloads, workers and restarts.
"""

import math
import operator
import random
import secrets
from datetime import datetime, timedelta

import structlog
from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from webq.config.settings import ErasureConfig
from webq.db.models.erasure import ChallengeAttempt
from webq.erasure.hashing import hashes_match, keyed_hash
from webq.erasure.types import Challenge, ChallengeLockedError, ChallengeResult
from webq.utils.clock import Clock, utc_now

logger = structlog.get_logger()

OPERATORS = {
    "+": operator.add,
    "-": operator.sub,
    "×": operator.mul,
}


class ChallengeGate:
    """Issues arithmetic challenges and enforces lockout per fingerprint.

    Every submission consumes the pending challenge. After
    ``challenge_max_attempts`` consecutive wrong answers the fingerprint
    is locked for ``challenge_lockout_seconds``; while locked nothing is
    accepted, not even a correct answer. The failure count resets on a
    correct answer or when the lockout expires.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config: ErasureConfig,
        clock: Clock = utc_now,
        rng: random.Random | None = None,
    ):
        self._session_factory = session_factory
        self._config = config
        self._clock = clock
        self._rng = rng or secrets.SystemRandom()

    async def issue_challenge(self, fingerprint: str) -> Challenge:
        """Issue a new challenge, replacing any unanswered one.

        Raises:
            ChallengeLockedError: If the fingerprint is locked out
        """
        now = self._clock()
        async with self._session_factory() as session, session.begin():
            state = await self._load(session, fingerprint, now)
            remaining = self._lock_remaining(state, now)
            if remaining:
                raise ChallengeLockedError(remaining)

            left, right, symbol = self._operands()
            nonce = secrets.token_hex(16)
            answer = OPERATORS[symbol](left, right)

            state.answer_nonce = nonce
            state.answer_hash = self._hash(fingerprint, nonce, str(answer))
            state.issued_at = now
            expected = state.answer_hash

        return Challenge(prompt=f"{left} {symbol} {right} = ?", expected_answer_hash=expected)

    async def submit(self, fingerprint: str, answer: str) -> ChallengeResult:
        """Check ``answer`` against the pending challenge.

        Returns:
            Result with ``ok`` and the attempts left before lockout

        Raises:
            ChallengeLockedError: If the fingerprint is locked, or this wrong
                answer exhausted the remaining attempts
        """
        now = self._clock()
        max_attempts = self._config.challenge_max_attempts
        locked_now = False

        async with self._session_factory() as session, session.begin():
            state = await self._load(session, fingerprint, now)
            remaining = self._lock_remaining(state, now)
            if remaining:
                raise ChallengeLockedError(remaining)

            expected, nonce = state.answer_hash, state.answer_nonce
            state.answer_hash = None
            state.answer_nonce = None
            state.issued_at = None

            normalized = _normalize_answer(answer)
            correct = (
                nonce is not None
                and normalized is not None
                and hashes_match(expected, self._hash(fingerprint, nonce, normalized))
            )

            if correct:
                state.failure_count = 0
                state.locked_until = None
            else:
                state.failure_count += 1
                if state.failure_count >= max_attempts:
                    state.locked_until = now + timedelta(
                        seconds=self._config.challenge_lockout_seconds
                    )
                    locked_now = True
            failure_count = state.failure_count

        if locked_now:
            logger.warning(
                "challenge_lockout_started",
                fingerprint=fingerprint,
                lockout_seconds=self._config.challenge_lockout_seconds,
            )
            raise ChallengeLockedError(self._config.challenge_lockout_seconds)

        return ChallengeResult(ok=correct, remaining_attempts=max(0, max_attempts - failure_count))

    async def _load(
        self, session: AsyncSession, fingerprint: str, now: datetime
    ) -> ChallengeAttempt:
        # Create-if-missing as one statement so concurrent first requests
        # from the same fingerprint cannot collide on the primary key.
        insert = pg_insert if session.get_bind().dialect.name == "postgresql" else sqlite_insert
        await session.execute(
            insert(ChallengeAttempt)
            .values(fingerprint=fingerprint, failure_count=0)
            .on_conflict_do_nothing(index_elements=["fingerprint"])
        )
        result = await session.execute(
            select(ChallengeAttempt)
            .where(ChallengeAttempt.fingerprint == fingerprint)
            .with_for_update()
        )
        state = result.scalar_one()
        if state.locked_until is not None and state.locked_until <= now:
            state.failure_count = 0
            state.locked_until = None
        return state

    @staticmethod
    def _lock_remaining(state: ChallengeAttempt, now: datetime) -> int:
        if state.locked_until is None or state.locked_until <= now:
            return 0
        return max(1, math.ceil((state.locked_until - now).total_seconds()))

    def _operands(self) -> tuple[int, int, str]:
        upper = self._config.challenge_operand_max
        left = self._rng.randint(1, upper)
        right = self._rng.randint(1, upper)
        symbol = self._rng.choice(list(OPERATORS))
        if symbol == "-" and right > left:
            left, right = right, left
        return left, right, symbol

    def _hash(self, fingerprint: str, nonce: str, answer: str) -> str:
        return keyed_hash(self._config.secret_key, fingerprint, nonce, answer)


def _normalize_answer(answer: str) -> str | None:
    try:
        return str(int(answer.strip()))
    except ValueError:
        return None
