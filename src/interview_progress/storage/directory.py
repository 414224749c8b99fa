"""Canonical entity lookups (users, positions, interviews) over SQLAlchemy."""

from typing import Any

import structlog
from sqlalchemy import JSON, Float, ForeignKey, String, select
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.pool import StaticPool

from interview_progress.models.entities import (
    Interview,
    InterviewEvaluation,
    InterviewStatus,
    Position,
    User,
)

logger = structlog.get_logger()


class Base(DeclarativeBase):
    pass


class UserRow(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    external_id: Mapped[str | None] = mapped_column(String(128), unique=True, index=True)
    name: Mapped[str | None] = mapped_column(String(255))
    email: Mapped[str | None] = mapped_column(String(255))


class PositionRow(Base):
    __tablename__ = "positions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    position_name: Mapped[str] = mapped_column(String(255))
    level: Mapped[str | None] = mapped_column(String(64))


class InterviewRow(Base):
    __tablename__ = "interviews"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str | None] = mapped_column(ForeignKey("users.id"), index=True)
    status: Mapped[str] = mapped_column(String(32), default=InterviewStatus.IN_PROGRESS.value)
    duration: Mapped[float] = mapped_column(Float, default=0)
    evaluation: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    skill_assessment: Mapped[dict[str, Any] | None] = mapped_column(JSON)


def _user_from_row(row: UserRow) -> User:
    return User(id=row.id, external_id=row.external_id, name=row.name, email=row.email)


def _interview_status(row: InterviewRow) -> InterviewStatus:
    try:
        return InterviewStatus(row.status)
    except ValueError:
        # Unrecognized values never count as completed.
        logger.warning("interview_status_unrecognized", interview_id=row.id, status=row.status)
        return InterviewStatus.INTERRUPTED


class CanonicalDirectory:
    """Async access to the relational store holding canonical entities.

    Args:
        database_url: SQLAlchemy async URL, e.g. ``sqlite+aiosqlite:///data/canonical.db``.
        engine: Pre-built engine, used instead of ``database_url`` when given.
    """

    def __init__(self, database_url: str | None = None, engine: AsyncEngine | None = None):
        if engine is None:
            if database_url is None:
                raise ValueError("database_url or engine is required")
            engine = create_async_engine(database_url, pool_pre_ping=True)
        self.engine = engine
        self._sessions = async_sessionmaker(engine, expire_on_commit=False)

    @classmethod
    def in_memory(cls) -> "CanonicalDirectory":
        """SQLite database living for the lifetime of the engine."""
        engine = create_async_engine(
            "sqlite+aiosqlite://",
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        return cls(engine=engine)

    async def init_schema(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        await self.engine.dispose()

    async def get_user(self, user_id: str) -> User | None:
        async with self._sessions() as session:
            row = await session.get(UserRow, user_id)
        return _user_from_row(row) if row is not None else None

    async def get_user_by_external_id(self, external_id: str) -> User | None:
        async with self._sessions() as session:
            result = await session.execute(
                select(UserRow).where(UserRow.external_id == external_id)
            )
            row = result.scalar_one_or_none()
        return _user_from_row(row) if row is not None else None

    async def get_position(self, position_id: str) -> Position | None:
        async with self._sessions() as session:
            row = await session.get(PositionRow, position_id)
        if row is None:
            return None
        return Position(id=row.id, position_name=row.position_name, level=row.level)

    async def get_interview(self, interview_id: str) -> Interview | None:
        async with self._sessions() as session:
            row = await session.get(InterviewRow, interview_id)
        if row is None:
            return None
        return Interview(
            id=row.id,
            user_id=row.user_id,
            status=_interview_status(row),
            duration=row.duration or 0,
            evaluation=(
                InterviewEvaluation.model_validate(row.evaluation) if row.evaluation else None
            ),
            skill_assessment=row.skill_assessment,
        )

    async def save_user(self, user: User) -> None:
        async with self._sessions() as session:
            await session.merge(
                UserRow(id=user.id, external_id=user.external_id, name=user.name, email=user.email)
            )
            await session.commit()

    async def save_position(self, position: Position) -> None:
        async with self._sessions() as session:
            await session.merge(
                PositionRow(id=position.id, position_name=position.position_name, level=position.level)
            )
            await session.commit()

    async def save_interview(self, interview: Interview) -> None:
        async with self._sessions() as session:
            await session.merge(
                InterviewRow(
                    id=interview.id,
                    user_id=interview.user_id,
                    status=interview.status.value,
                    duration=interview.duration,
                    evaluation=(
                        interview.evaluation.to_document() if interview.evaluation else None
                    ),
                    skill_assessment=interview.skill_assessment,
                )
            )
            await session.commit()
        logger.debug("interview_saved", interview_id=interview.id, status=interview.status.value)
