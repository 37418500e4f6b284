"""플레이어 단위 직렬화 + 트랜잭션

모든 변경 작업은:
1. 플레이어별 in-process 락 (UserLockRegistry)
2. 하나의 SQLAlchemy 트랜잭션 (커밋 또는 전체 롤백)
3. Player 행 with_for_update() + version_id_col 낙관적 검사
아래에서 실행된다. 내부 재시도는 없다.
"""

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from questline.core.errors import ConcurrentModificationError, InvariantViolation

logger = logging.getLogger(__name__)


class UserLockRegistry:
    """player_id별 재진입 락"""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def lock_for(self, player_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(player_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[player_id] = lock
            return lock

    @contextmanager
    def hold(self, player_id: str) -> Iterator[None]:
        lock = self.lock_for(player_id)
        with lock:
            yield

    def __len__(self) -> int:
        return len(self._locks)


class TransactionRunner:
    """세션 팩토리 + 락 레지스트리. 서비스들이 공유한다."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        locks: UserLockRegistry | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.locks = locks or UserLockRegistry()

    @contextmanager
    def for_player(self, player_id: str) -> Iterator[Session]:
        """플레이어 락을 잡고 트랜잭션 1개를 연다. 예외 시 전체 롤백."""
        with self.locks.hold(player_id):
            with self._transaction(player_id) as session:
                yield session

    @contextmanager
    def read_only(self) -> Iterator[Session]:
        """직렬화하지 않는 조회용 세션"""
        session = self._session_factory()
        try:
            yield session
        finally:
            session.close()

    @contextmanager
    def _transaction(self, player_id: str) -> Iterator[Session]:
        session = self._session_factory()
        try:
            with session.begin():
                yield session
        except StaleDataError as e:
            logger.warning("Concurrent modification for %s: %s", player_id, e)
            raise ConcurrentModificationError(
                "Player state changed concurrently, retry the request",
                {"player_id": player_id},
            ) from e
        except IntegrityError as e:
            logger.warning("Integrity conflict for %s: %s", player_id, e.orig)
            raise ConcurrentModificationError(
                "Conflicting write detected, retry the request",
                {"player_id": player_id},
            ) from e
        except InvariantViolation as e:
            logger.error(
                "Invariant violation for %s: %s %s", player_id, e.message, e.details
            )
            raise
        finally:
            session.close()
