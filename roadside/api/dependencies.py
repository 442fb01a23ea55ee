"""FastAPI dependency injection helpers."""

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from roadside.domain.errors import TransientIOError
from roadside.infrastructure.database import async_session_factory


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield a unit-of-work session; commit on success, rollback on error.

    Connection-level failures are surfaced as ``TransientIOError`` (503) so
    pollers know to simply try again on their next tick.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except OperationalError as exc:
            await session.rollback()
            raise TransientIOError("Storage temporarily unavailable") from exc
        except Exception:
            await session.rollback()
            raise
