"""Table-backed state store on SQLAlchemy async.

Works with any async driver SQLAlchemy supports; sqlite+aiosqlite for a
single box, postgresql+asyncpg for a managed database. Row ids are
integers in the table and strings on the wire.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any

import structlog
from sqlalchemy import JSON, Date, DateTime, Integer, String, Text, select
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from pabridge.state_api.records import (
    PROJECT_DEFAULTS,
    TASK_DEFAULTS,
    clean_project,
    clean_task,
    entry_id,
)

logger = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for state tables."""

    type_annotation_map = {
        datetime: DateTime(timezone=True),
    }


class TaskRow(Base):
    __tablename__ = "tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(500))
    context: Mapped[str] = mapped_column(Text, default="")
    status: Mapped[str] = mapped_column(String(20), default="open")
    due: Mapped[date | None] = mapped_column(Date, nullable=True)
    priority_hint: Mapped[str | None] = mapped_column(String(20), nullable=True)
    project_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    project_hint: Mapped[str | None] = mapped_column(String(500), nullable=True)
    source_ref: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=_utcnow, onupdate=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "title": self.title,
            "context": self.context or "",
            "status": self.status or "open",
            "due": self.due.isoformat() if self.due else None,
            "priority_hint": self.priority_hint,
            "project_id": self.project_id,
            "project_hint": self.project_hint,
            "source_ref": self.source_ref,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class ProjectRow(Base):
    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(500))
    description: Mapped[str] = mapped_column(Text, default="")
    status: Mapped[str] = mapped_column(String(20), default="active")
    deadline: Mapped[date | None] = mapped_column(Date, nullable=True)
    milestones: Mapped[list[Any]] = mapped_column(JSON, default=list)
    risks: Mapped[list[Any]] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=_utcnow, onupdate=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "name": self.name,
            "description": self.description or "",
            "status": self.status or "active",
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "milestones": list(self.milestones or []),
            "risks": list(self.risks or []),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


def _row_values(fields: dict[str, Any], date_key: str) -> dict[str, Any]:
    values = dict(fields)
    if date_key in values:
        values[date_key] = date.fromisoformat(values[date_key]) if values[date_key] else None
    return values


def _row_id(raw_id: str) -> int | None:
    try:
        return int(raw_id)
    except ValueError:
        return None


def create_engine(database_url: str) -> AsyncEngine:
    # Pool sizing only applies to server databases.
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, future=True)
    return create_async_engine(
        database_url,
        pool_size=5,
        max_overflow=5,
        pool_recycle=3600,
        pool_pre_ping=True,
        future=True,
    )


class TableStateStore:
    """State store backed by ``tasks`` and ``projects`` tables."""

    def __init__(self, database_url: str) -> None:
        self._engine = create_engine(database_url)
        self._sessions: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    async def init(self) -> None:
        """Create missing tables. No migrations."""
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("state_tables_ready")

    async def close(self) -> None:
        await self._engine.dispose()

    async def list_tasks(self) -> list[dict[str, Any]]:
        async with self._sessions() as session:
            rows = (await session.execute(select(TaskRow).order_by(TaskRow.id))).scalars().all()
            return [row.to_dict() for row in rows]

    async def list_projects(self) -> list[dict[str, Any]]:
        async with self._sessions() as session:
            rows = (await session.execute(select(ProjectRow).order_by(ProjectRow.id))).scalars().all()
            return [row.to_dict() for row in rows]

    async def save_tasks(self, entries: list[Any]) -> list[dict[str, Any]]:
        return await self._save(entries, TaskRow, clean_task, TASK_DEFAULTS, "due")

    async def save_projects(self, entries: list[Any]) -> list[dict[str, Any]]:
        return await self._save(entries, ProjectRow, clean_project, PROJECT_DEFAULTS, "deadline")

    async def _save(
        self,
        entries: list[Any],
        model: type[TaskRow] | type[ProjectRow],
        clean: Any,
        defaults: dict[str, Any],
        date_key: str,
    ) -> list[dict[str, Any]]:
        rows: list[TaskRow | ProjectRow] = []
        async with self._sessions() as session:
            try:
                for raw in entries:
                    fields = clean(raw)
                    if fields is None:
                        continue
                    raw_id = entry_id(raw)
                    if raw_id is None:
                        row = model(**_row_values({**defaults, **fields}, date_key))
                        session.add(row)
                    else:
                        row_id = _row_id(raw_id)
                        row = await session.get(model, row_id) if row_id is not None else None
                        if row is None:
                            logger.warning("state_row_unknown_id", table=model.__tablename__, id=raw_id)
                            continue
                        for key, value in _row_values(fields, date_key).items():
                            setattr(row, key, value)
                    rows.append(row)
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            return [row.to_dict() for row in rows]
