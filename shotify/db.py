"""
Database abstraction for SQL (Postgres) and an in-memory test implementation.
"""

from __future__ import annotations

import copy
import logging
import time
from contextlib import contextmanager
from typing import Dict, Iterator, Optional, Protocol

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Float,
    Integer,
    String,
    create_engine,
    delete,
    func,
    select,
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from shotify.errors import ConflictError, UpstreamError
from shotify.models import ProjectRecord, TemplateRecord, UserRecord, new_id

logger = logging.getLogger(__name__)

# Columns a project update is allowed to touch.
PROJECT_MUTABLE_FIELDS = ("name", "thumbnail", "project_config")


class DbClient(Protocol):
    """Interface for database access."""

    def create_user(self, email: str, password_hash: str, name: str) -> UserRecord:
        ...

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        ...

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        ...

    def list_templates(self, platform: str | None = None) -> list[TemplateRecord]:
        ...

    def get_template(self, template_id: str) -> Optional[TemplateRecord]:
        ...

    def count_templates(self) -> int:
        ...

    def insert_templates(self, templates: list[TemplateRecord]) -> int:
        ...

    def create_project(self, project: ProjectRecord) -> ProjectRecord:
        ...

    def list_projects_for_user(self, user_id: str) -> list[ProjectRecord]:
        ...

    def get_project_for_user(
        self, project_id: str, user_id: str
    ) -> Optional[ProjectRecord]:
        ...

    def update_project(
        self, project_id: str, user_id: str, changes: dict
    ) -> Optional[ProjectRecord]:
        ...

    def delete_project(self, project_id: str, user_id: str) -> bool:
        ...

    def count_projects_for_user(self, user_id: str) -> int:
        ...


class InMemoryDbClient:
    """
    Simple in-memory database for development and tests.

    Records are copied on the way in and on the way out so callers never hold
    references into stored state, mirroring a real document store.
    """

    def __init__(self):
        self.users: Dict[str, UserRecord] = {}
        self.templates: Dict[str, TemplateRecord] = {}
        self.projects: Dict[str, ProjectRecord] = {}

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.users.clear()
        self.templates.clear()
        self.projects.clear()

    def create_user(self, email: str, password_hash: str, name: str) -> UserRecord:
        if self.get_user_by_email(email):
            raise ConflictError("email already registered", message="Registration failed")
        record = UserRecord(
            id=new_id(), email=email, password_hash=password_hash, name=name
        )
        self.users[record.id] = record
        return copy.deepcopy(record)

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        record = self.users.get(user_id)
        return copy.deepcopy(record) if record else None

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        for record in self.users.values():
            if record.email == email:
                return copy.deepcopy(record)
        return None

    def list_templates(self, platform: str | None = None) -> list[TemplateRecord]:
        return [
            copy.deepcopy(t)
            for t in self.templates.values()
            if not platform or t.platform == platform
        ]

    def get_template(self, template_id: str) -> Optional[TemplateRecord]:
        record = self.templates.get(template_id)
        return copy.deepcopy(record) if record else None

    def count_templates(self) -> int:
        return len(self.templates)

    def insert_templates(self, templates: list[TemplateRecord]) -> int:
        for template in templates:
            self.templates[template.id] = copy.deepcopy(template)
        return len(templates)

    def create_project(self, project: ProjectRecord) -> ProjectRecord:
        now = time.time()
        project.created_at = now
        project.updated_at = now
        self.projects[project.id] = copy.deepcopy(project)
        return copy.deepcopy(project)

    def list_projects_for_user(self, user_id: str) -> list[ProjectRecord]:
        owned = [p for p in self.projects.values() if p.user_id == user_id]
        owned.sort(key=lambda p: (p.updated_at, p.created_at), reverse=True)
        return [copy.deepcopy(p) for p in owned]

    def _owned(self, project_id: str, user_id: str) -> Optional[ProjectRecord]:
        project = self.projects.get(project_id)
        if project is None or project.user_id != user_id:
            return None
        return project

    def get_project_for_user(
        self, project_id: str, user_id: str
    ) -> Optional[ProjectRecord]:
        project = self._owned(project_id, user_id)
        return copy.deepcopy(project) if project else None

    def update_project(
        self, project_id: str, user_id: str, changes: dict
    ) -> Optional[ProjectRecord]:
        project = self._owned(project_id, user_id)
        if project is None:
            return None
        for key, value in changes.items():
            if key in PROJECT_MUTABLE_FIELDS:
                setattr(project, key, copy.deepcopy(value))
        project.updated_at = time.time()
        return copy.deepcopy(project)

    def delete_project(self, project_id: str, user_id: str) -> bool:
        if self._owned(project_id, user_id) is None:
            return False
        del self.projects[project_id]
        return True

    def count_projects_for_user(self, user_id: str) -> int:
        return sum(1 for p in self.projects.values() if p.user_id == user_id)


class SqlDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlDbClient")
        engine_kwargs = {"future": True, "pool_pre_ping": True}
        if not database_url.startswith("sqlite"):
            engine_kwargs["pool_recycle"] = 1800
        self.engine = create_engine(database_url, **engine_kwargs)
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        with self.Session() as session:
            try:
                yield session
            except SQLAlchemyError as exc:
                session.rollback()
                logger.exception("Database operation failed")
                raise UpstreamError("database operation failed") from exc

    @staticmethod
    def _to_user(row: "UserRow") -> UserRecord:
        return UserRecord(
            id=row.id,
            email=row.email,
            password_hash=row.password_hash,
            name=row.name,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _to_template(row: "TemplateRow") -> TemplateRecord:
        return TemplateRecord(
            id=row.id,
            name=row.name,
            platform=row.platform,
            json_config=copy.deepcopy(row.json_config),
            description=row.description or "",
            category=row.category or "",
            thumbnail=row.thumbnail or "",
            is_active=row.is_active,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _to_project(row: "ProjectRow") -> ProjectRecord:
        return ProjectRecord(
            id=row.id,
            user_id=row.user_id,
            template_id=row.template_id,
            name=row.name,
            thumbnail=row.thumbnail or "",
            project_config=copy.deepcopy(row.project_config),
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def create_user(self, email: str, password_hash: str, name: str) -> UserRecord:
        now = time.time()
        row = UserRow(
            id=new_id(),
            email=email,
            password_hash=password_hash,
            name=name,
            created_at=now,
            updated_at=now,
        )
        with self._session() as session:
            session.add(row)
            try:
                session.commit()
            except IntegrityError as exc:
                # Unique email index: a concurrent registration won the race.
                session.rollback()
                raise ConflictError(
                    "email already registered", message="Registration failed"
                ) from exc
            return self._to_user(row)

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        with self._session() as session:
            row = session.get(UserRow, user_id)
            return self._to_user(row) if row else None

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        with self._session() as session:
            row = session.execute(
                select(UserRow).where(UserRow.email == email)
            ).scalar_one_or_none()
            return self._to_user(row) if row else None

    def list_templates(self, platform: str | None = None) -> list[TemplateRecord]:
        with self._session() as session:
            stmt = select(TemplateRow).order_by(TemplateRow.position.asc())
            if platform:
                stmt = stmt.where(TemplateRow.platform == platform)
            rows = session.execute(stmt).scalars().all()
            return [self._to_template(row) for row in rows]

    def get_template(self, template_id: str) -> Optional[TemplateRecord]:
        with self._session() as session:
            row = session.get(TemplateRow, template_id)
            return self._to_template(row) if row else None

    def count_templates(self) -> int:
        with self._session() as session:
            return session.execute(
                select(func.count()).select_from(TemplateRow)
            ).scalar_one()

    def insert_templates(self, templates: list[TemplateRecord]) -> int:
        with self._session() as session:
            offset = session.execute(
                select(func.count()).select_from(TemplateRow)
            ).scalar_one()
            for index, template in enumerate(templates):
                session.add(
                    TemplateRow(
                        id=template.id,
                        position=offset + index,
                        name=template.name,
                        platform=template.platform,
                        description=template.description,
                        category=template.category,
                        thumbnail=template.thumbnail,
                        is_active=template.is_active,
                        json_config=copy.deepcopy(template.json_config),
                        created_at=template.created_at,
                        updated_at=template.updated_at,
                    )
                )
            session.commit()
            return len(templates)

    def create_project(self, project: ProjectRecord) -> ProjectRecord:
        now = time.time()
        with self._session() as session:
            row = ProjectRow(
                id=project.id,
                user_id=project.user_id,
                template_id=project.template_id,
                name=project.name,
                thumbnail=project.thumbnail,
                project_config=copy.deepcopy(project.project_config),
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.commit()
            return self._to_project(row)

    def list_projects_for_user(self, user_id: str) -> list[ProjectRecord]:
        with self._session() as session:
            rows = (
                session.execute(
                    select(ProjectRow)
                    .where(ProjectRow.user_id == user_id)
                    .order_by(
                        ProjectRow.updated_at.desc(), ProjectRow.created_at.desc()
                    )
                )
                .scalars()
                .all()
            )
            return [self._to_project(row) for row in rows]

    def get_project_for_user(
        self, project_id: str, user_id: str
    ) -> Optional[ProjectRecord]:
        with self._session() as session:
            row = session.execute(
                select(ProjectRow).where(
                    ProjectRow.id == project_id, ProjectRow.user_id == user_id
                )
            ).scalar_one_or_none()
            return self._to_project(row) if row else None

    def update_project(
        self, project_id: str, user_id: str, changes: dict
    ) -> Optional[ProjectRecord]:
        with self._session() as session:
            row = session.execute(
                select(ProjectRow)
                .where(ProjectRow.id == project_id, ProjectRow.user_id == user_id)
                .with_for_update()
            ).scalar_one_or_none()
            if not row:
                return None
            for key, value in changes.items():
                if key in PROJECT_MUTABLE_FIELDS:
                    setattr(row, key, copy.deepcopy(value))
            row.updated_at = time.time()
            session.commit()
            return self._to_project(row)

    def delete_project(self, project_id: str, user_id: str) -> bool:
        with self._session() as session:
            result = session.execute(
                delete(ProjectRow).where(
                    ProjectRow.id == project_id, ProjectRow.user_id == user_id
                )
            )
            session.commit()
            return (result.rowcount or 0) > 0

    def count_projects_for_user(self, user_id: str) -> int:
        with self._session() as session:
            return session.execute(
                select(func.count())
                .select_from(ProjectRow)
                .where(ProjectRow.user_id == user_id)
            ).scalar_one()


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    email = Column(String, nullable=False, unique=True, index=True)
    password_hash = Column(String, nullable=False)
    name = Column(String, nullable=False, default="")
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class TemplateRow(Base):
    __tablename__ = "templates"

    id = Column(String, primary_key=True)
    position = Column(Integer, nullable=False, index=True)
    name = Column(String, nullable=False)
    platform = Column(String, nullable=False, index=True)
    description = Column(String, nullable=True)
    category = Column(String, nullable=True)
    thumbnail = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    json_config = Column(JSON, nullable=False)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class ProjectRow(Base):
    __tablename__ = "projects"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    template_id = Column(String, nullable=False)
    name = Column(String, nullable=False)
    thumbnail = Column(String, nullable=True)
    project_config = Column(JSON, nullable=False)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False, index=True)
