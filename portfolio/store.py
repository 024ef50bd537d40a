"""
portfolio/store.py -- SQLAlchemy-backed persistence for projects, contact
messages, categories and uploaded images.

Uses SQLAlchemy Core (not ORM) so the dataclasses in portfolio/models.py stay
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change.

Pattern: Repository + Data Mapper. PortfolioStore is the repository; the
_row_to_* functions are the mappers. Route handlers never touch SQL directly.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = PortfolioStore(settings.database_url)
    project_id = store.create_project(project)
    store.list_projects(status="TERMINE")
    store.set_project_status(project_id, "EN_ATTENTE")
    store.close()
"""

import json
import uuid
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    LargeBinary,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    event,
    func,
    select,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from portfolio.models import (
    CONTACT_STATUSES,
    AssociationReport,
    AssociationResult,
    Category,
    ContactMessage,
    Project,
    ProjectImage,
)

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_projects = Table(
    "projects",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("title", String(200), nullable=False),
    Column("description", Text, nullable=False),
    Column("technologies", Text, nullable=False),  # JSON array serialized as text
    Column("client", String(100), nullable=False),
    Column("duration", String(50), nullable=False),
    Column("status", String(20), nullable=False, server_default="EN_COURS"),
    Column("date", String(10), nullable=False),  # YYYY-MM-DD
    Column("url", String(500)),
    Column("image_url", String(500)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_images = Table(
    "project_images",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("project_id", String(36), ForeignKey("projects.id")),
    Column("filename", String(255), nullable=False),
    Column("mimetype", String(100), nullable=False),
    Column("size", Integer, nullable=False),
    Column("data", LargeBinary),  # database storage backend
    Column("path", String(500)),  # disk storage backend, relative to UPLOAD_DIR
    Column("created_at", String(32), nullable=False),
)

_contacts = Table(
    "contact_messages",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(50), nullable=False),
    Column("email", String(255), nullable=False),
    Column("company", String(100)),
    Column("subject", String(100), nullable=False),
    Column("message", Text, nullable=False),
    Column("status", String(20), nullable=False, server_default="NOUVEAU"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_categories = Table(
    "categories",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(100), nullable=False, unique=True),
)

_project_categories = Table(
    "project_categories",
    _metadata,
    Column("project_id", String(36), ForeignKey("projects.id"), nullable=False),
    Column("category_id", String(36), ForeignKey("categories.id"), nullable=False),
    UniqueConstraint("project_id", "category_id", name="uq_project_category"),
)

# Image listings never load blob bytes.
_IMAGE_META_COLUMNS = [c for c in _images.c if c.name != "data"]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode; set per-connection because SQLite PRAGMAs are not inherited."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class PortfolioStore:
    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            # FastAPI runs sync handlers in a thread pool, so the same pooled
            # connection may be used from several threads.
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def ping(self) -> bool:
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def create_project(self, project: Project) -> str:
        """Insert a new project and return its generated ID.

        date defaults to today (UTC) when empty.
        """
        project_id = _new_id()
        now = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _projects.insert().values(
                    id=project_id,
                    title=project.title,
                    description=project.description,
                    technologies=json.dumps(project.technologies),
                    client=project.client,
                    duration=project.duration,
                    status=project.status,
                    date=project.date or datetime.now(timezone.utc).date().isoformat(),
                    url=project.url,
                    image_url=project.image_url,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        return project_id

    def get_project(self, project_id: str) -> Optional[Project]:
        """Fetch a single project by ID. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_projects.select().where(_projects.c.id == project_id)).fetchone()
        return _row_to_project(row) if row is not None else None

    def list_projects(self, status: Optional[str] = None) -> list[Project]:
        """Return projects newest first, optionally restricted to one status."""
        query = _projects.select().order_by(_projects.c.created_at.desc())
        if status is not None:
            query = query.where(_projects.c.status == status)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_project(r) for r in rows]

    def update_project(self, project_id: str, **fields) -> bool:
        """Update any subset of a project's mutable fields.

        technologies must be passed as list[str]; it is serialized here.
        Returns True if a row was updated, False if project_id was not found.
        """
        if "technologies" in fields:
            fields["technologies"] = json.dumps(fields["technologies"])
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_projects.update().where(_projects.c.id == project_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def set_project_status(self, project_id: str, status: str) -> bool:
        return self.update_project(project_id, status=status)

    def delete_project(self, project_id: str) -> bool:
        """Delete a project together with its images and category links.

        Runs in one transaction. Callers using the disk backend must list the
        project's images first to remove their files afterwards.
        Returns False if project_id was not found.
        """
        with self.engine.begin() as conn:
            conn.execute(_project_categories.delete().where(_project_categories.c.project_id == project_id))
            conn.execute(_images.delete().where(_images.c.project_id == project_id))
            result = conn.execute(_projects.delete().where(_projects.c.id == project_id))
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Contact messages
    # ------------------------------------------------------------------

    def create_contact(self, message: ContactMessage) -> str:
        message_id = _new_id()
        now = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _contacts.insert().values(
                    id=message_id,
                    name=message.name,
                    email=message.email,
                    company=message.company or None,
                    subject=message.subject,
                    message=message.message,
                    status=message.status,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        return message_id

    def get_contact(self, message_id: str) -> Optional[ContactMessage]:
        with self.engine.connect() as conn:
            row = conn.execute(_contacts.select().where(_contacts.c.id == message_id)).fetchone()
        return _row_to_contact(row) if row is not None else None

    def list_contacts(self, status: Optional[str] = None) -> list[ContactMessage]:
        """Return contact messages newest first, optionally filtered by status."""
        query = _contacts.select().order_by(_contacts.c.created_at.desc())
        if status is not None:
            query = query.where(_contacts.c.status == status)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_contact(r) for r in rows]

    def set_contact_status(self, message_id: str, status: str) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(
                _contacts.update()
                .where(_contacts.c.id == message_id)
                .values(status=status, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def delete_contact(self, message_id: str) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_contacts.delete().where(_contacts.c.id == message_id))
            conn.commit()
        return result.rowcount > 0

    def contact_stats(self) -> dict[str, int]:
        """Return {"total": n, "NOUVEAU": n, "LU": n, "TRAITE": n, "ARCHIVE": n}.

        Every status key is present, zero when no message has that status.
        """
        counts = {status: 0 for status in CONTACT_STATUSES}
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(_contacts.c.status, func.count()).group_by(_contacts.c.status)
            ).fetchall()
        for status, count in rows:
            counts[status] = count
        counts["total"] = sum(count for _, count in rows)
        return counts

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    def create_images(self, images: Iterable[ProjectImage]) -> list[str]:
        """Insert image records in a single transaction and return their IDs.

        Either every record is written or none is.
        """
        ids: list[str] = []
        now = _now_iso()
        with self.engine.begin() as conn:
            for image in images:
                image_id = image.id or _new_id()
                conn.execute(
                    _images.insert().values(
                        id=image_id,
                        project_id=image.project_id,
                        filename=image.filename,
                        mimetype=image.mimetype,
                        size=image.size,
                        data=image.data,
                        path=image.path,
                        created_at=now,
                    )
                )
                ids.append(image_id)
        return ids

    def get_image(self, image_id: str) -> Optional[ProjectImage]:
        """Fetch an image record including its bytes (database backend)."""
        with self.engine.connect() as conn:
            row = conn.execute(_images.select().where(_images.c.id == image_id)).fetchone()
        return _row_to_image(row) if row is not None else None

    def list_images(self, project_id: Optional[str] = None) -> list[ProjectImage]:
        """Return image metadata newest first. data is never loaded."""
        query = select(*_IMAGE_META_COLUMNS).order_by(_images.c.created_at.desc())
        if project_id is not None:
            query = query.where(_images.c.project_id == project_id)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_image(r) for r in rows]

    def delete_image(self, image_id: str) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_images.delete().where(_images.c.id == image_id))
            conn.commit()
        return result.rowcount > 0

    def image_stats(self) -> tuple[int, int]:
        """Return (file count, total bytes) across all stored images."""
        with self.engine.connect() as conn:
            count, total = conn.execute(select(func.count(), func.coalesce(func.sum(_images.c.size), 0))).one()
        return int(count), int(total)

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def create_category(self, name: str) -> str:
        """Insert a category. Raises IntegrityError if the name already exists."""
        category_id = _new_id()
        with self.engine.connect() as conn:
            conn.execute(_categories.insert().values(id=category_id, name=name))
            conn.commit()
        return category_id

    def get_category(self, category_id: str) -> Optional[Category]:
        with self.engine.connect() as conn:
            row = conn.execute(_categories.select().where(_categories.c.id == category_id)).fetchone()
        return Category(id=row.id, name=row.name) if row is not None else None

    def list_categories(self) -> list[Category]:
        with self.engine.connect() as conn:
            rows = conn.execute(_categories.select().order_by(_categories.c.name)).fetchall()
        return [Category(id=r.id, name=r.name) for r in rows]

    def get_project_categories(self, project_id: str) -> list[Category]:
        query = (
            select(_categories.c.id, _categories.c.name)
            .join(_project_categories, _project_categories.c.category_id == _categories.c.id)
            .where(_project_categories.c.project_id == project_id)
            .order_by(_categories.c.name)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [Category(id=r.id, name=r.name) for r in rows]

    def associate_projects(self, category_id: str, project_ids: Iterable[str]) -> AssociationReport:
        """Link each project to the category, one independent write per project.

        A failure for one project (unknown ID, already linked, DB error) is
        recorded in the report and does not undo or block the others.
        """
        report = AssociationReport(category_id=category_id)
        for project_id in project_ids:
            if self.get_project(project_id) is None:
                report.results.append(AssociationResult(project_id=project_id, ok=False, error="project_not_found"))
                continue
            try:
                with self.engine.begin() as conn:
                    conn.execute(_project_categories.insert().values(project_id=project_id, category_id=category_id))
            except IntegrityError:
                report.results.append(AssociationResult(project_id=project_id, ok=False, error="already_linked"))
            except SQLAlchemyError as exc:
                report.results.append(AssociationResult(project_id=project_id, ok=False, error=type(exc).__name__))
            else:
                report.results.append(AssociationResult(project_id=project_id, ok=True))
        return report

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern -- DB row -> domain dataclass)
# ---------------------------------------------------------------------------


def _row_to_project(row) -> Project:
    technologies: list[str] = json.loads(row.technologies) if row.technologies else []
    return Project(
        id=row.id,
        title=row.title,
        description=row.description,
        technologies=technologies,
        client=row.client,
        duration=row.duration,
        status=row.status,
        date=row.date,
        url=row.url,
        image_url=row.image_url,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_contact(row) -> ContactMessage:
    return ContactMessage(
        id=row.id,
        name=row.name,
        email=row.email,
        company=row.company,
        subject=row.subject,
        message=row.message,
        status=row.status,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_image(row) -> ProjectImage:
    return ProjectImage(
        id=row.id,
        project_id=row.project_id,
        filename=row.filename,
        mimetype=row.mimetype,
        size=row.size,
        data=getattr(row, "data", None),
        path=row.path,
        created_at=row.created_at,
    )
