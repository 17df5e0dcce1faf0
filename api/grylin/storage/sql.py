"""
PostgreSQL storage backend (SQLAlchemy async session).

The session belongs to the request (see ``get_db``); this class only
flushes, never commits.  Folder, stack and upcoming listings are cached in
Redis through AggregateCache; every write invalidates the namespaces derived
from the entity it touched.
"""
import logging
import uuid

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from grylin.core.errors import NotFound
from grylin.core.redis import FOLDERS_NS, LIFESTACKS_NS, UPCOMING_NS, AggregateCache
from grylin.models.alert import GuardianAlert
from grylin.models.document import Document
from grylin.models.folder import VaultFolder
from grylin.models.life_stack import LifeStack
from grylin.models.user import User
from grylin.schemas.alert import AlertCreate, AlertResponse
from grylin.schemas.document import DocumentCreate, DocumentResponse
from grylin.schemas.folder import FolderResponse
from grylin.schemas.life_stack import LifeStackCreate, LifeStackResponse, LifeStackUpdate
from grylin.schemas.user import NotificationSettings

logger = logging.getLogger(__name__)


class SqlStorage:
    def __init__(self, db: AsyncSession, cache: AggregateCache | None = None):
        self.db = db
        self.cache = cache

    # ── Cache helpers ──────────────────────────────────────────────────────────

    async def _cached(self, key: str, model):
        if self.cache is None:
            return None
        hit = await self.cache.get(key)
        if hit is None:
            return None
        return [model.model_validate(item) for item in hit]

    async def _store(self, key: str, items: list) -> None:
        if self.cache is not None:
            await self.cache.set(key, [i.model_dump(mode="json") for i in items])

    async def _invalidate(self, entity: str) -> None:
        if self.cache is not None:
            await self.cache.invalidate_for(entity)

    # ── Documents ──────────────────────────────────────────────────────────────

    async def _document_row(self, user_id: uuid.UUID, document_id: uuid.UUID) -> Document | None:
        result = await self.db.execute(
            select(Document).where(Document.id == document_id, Document.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def list_documents(self, user_id, *, status=None, folder_id=None, life_stack_id=None):
        query = (
            select(Document)
            .where(Document.user_id == user_id)
            .order_by(Document.created_at.desc())
        )
        if status is not None:
            query = query.where(Document.status == status)
        if folder_id is not None:
            query = query.where(Document.folder_id == folder_id)
        if life_stack_id is not None:
            query = query.where(Document.life_stack_id == life_stack_id)
        result = await self.db.execute(query)
        return [DocumentResponse.model_validate(d) for d in result.scalars().all()]

    async def list_upcoming(self, user_id):
        key = f"{UPCOMING_NS}{user_id}"
        cached = await self._cached(key, DocumentResponse)
        if cached is not None:
            return cached

        result = await self.db.execute(
            select(Document)
            .where(
                Document.user_id == user_id,
                Document.status == "new",
                Document.due_date.isnot(None),
            )
            .order_by(Document.due_date.asc())
        )
        docs = [DocumentResponse.model_validate(d) for d in result.scalars().all()]
        await self._store(key, docs)
        return docs

    async def get_document(self, user_id, document_id):
        row = await self._document_row(user_id, document_id)
        return DocumentResponse.model_validate(row) if row else None

    async def create_document(self, user_id, data: DocumentCreate):
        row = Document(user_id=user_id, status="new", **data.model_dump())
        self.db.add(row)
        await self.db.flush()
        await self.db.refresh(row)
        await self._invalidate("document")
        return DocumentResponse.model_validate(row)

    async def update_document(self, user_id, document_id, **fields):
        row = await self._document_row(user_id, document_id)
        if row is None:
            raise NotFound("Document not found")
        for field, value in fields.items():
            setattr(row, field, value)
        await self.db.flush()
        await self.db.refresh(row)
        await self._invalidate("document")
        return DocumentResponse.model_validate(row)

    async def remove_document(self, user_id, document_id):
        await self.db.execute(
            delete(Document).where(Document.id == document_id, Document.user_id == user_id)
        )
        await self._invalidate("document")

    async def detach_folder(self, user_id, folder_id):
        result = await self.db.execute(
            update(Document)
            .where(Document.user_id == user_id, Document.folder_id == folder_id)
            .values(folder_id=None)
        )
        await self._invalidate("document")
        return result.rowcount or 0

    async def detach_stack(self, user_id, stack_id):
        result = await self.db.execute(
            update(Document)
            .where(Document.user_id == user_id, Document.life_stack_id == stack_id)
            .values(life_stack_id=None)
        )
        await self._invalidate("document")
        return result.rowcount or 0

    # ── Folders ────────────────────────────────────────────────────────────────

    async def list_folders(self, user_id):
        key = f"{FOLDERS_NS}{user_id}"
        cached = await self._cached(key, FolderResponse)
        if cached is not None:
            return cached

        rows = await self.db.execute(
            select(VaultFolder, func.count(Document.id))
            .outerjoin(Document, Document.folder_id == VaultFolder.id)
            .where(VaultFolder.user_id == user_id)
            .group_by(VaultFolder.id)
            .order_by(VaultFolder.name)
        )
        folders = [
            FolderResponse(
                id=f.id, user_id=f.user_id, name=f.name, created_at=f.created_at, item_count=count
            )
            for f, count in rows.all()
        ]
        await self._store(key, folders)
        return folders

    async def create_folder(self, user_id, name):
        row = VaultFolder(user_id=user_id, name=name)
        self.db.add(row)
        await self.db.flush()
        await self.db.refresh(row)
        await self._invalidate("folder")
        return FolderResponse.model_validate(row)

    async def remove_folder(self, user_id, folder_id):
        result = await self.db.execute(
            delete(VaultFolder).where(VaultFolder.id == folder_id, VaultFolder.user_id == user_id)
        )
        if not result.rowcount:
            raise NotFound("Folder not found")
        await self._invalidate("folder")

    # ── Life stacks ────────────────────────────────────────────────────────────

    async def _stack_row(self, user_id, stack_id) -> LifeStack | None:
        result = await self.db.execute(
            select(LifeStack).where(LifeStack.id == stack_id, LifeStack.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def list_stacks(self, user_id):
        key = f"{LIFESTACKS_NS}{user_id}"
        cached = await self._cached(key, LifeStackResponse)
        if cached is not None:
            return cached

        rows = await self.db.execute(
            select(LifeStack, func.count(Document.id))
            .outerjoin(Document, Document.life_stack_id == LifeStack.id)
            .where(LifeStack.user_id == user_id)
            .group_by(LifeStack.id)
            .order_by(LifeStack.created_at)
        )
        stacks = [
            LifeStackResponse(
                id=s.id,
                user_id=s.user_id,
                name=s.name,
                icon=s.icon,
                color=s.color,
                keywords=list(s.keywords or []),
                created_at=s.created_at,
                item_count=count,
            )
            for s, count in rows.all()
        ]
        await self._store(key, stacks)
        return stacks

    async def create_stack(self, user_id, data: LifeStackCreate):
        row = LifeStack(user_id=user_id, **data.model_dump())
        self.db.add(row)
        await self.db.flush()
        await self.db.refresh(row)
        await self._invalidate("life_stack")
        return LifeStackResponse.model_validate(row)

    async def update_stack(self, user_id, stack_id, data: LifeStackUpdate):
        row = await self._stack_row(user_id, stack_id)
        if row is None:
            raise NotFound("Life stack not found")
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(row, field, value)
        await self.db.flush()
        await self.db.refresh(row)
        await self._invalidate("life_stack")
        return LifeStackResponse.model_validate(row)

    async def remove_stack(self, user_id, stack_id):
        result = await self.db.execute(
            delete(LifeStack).where(LifeStack.id == stack_id, LifeStack.user_id == user_id)
        )
        if not result.rowcount:
            raise NotFound("Life stack not found")
        await self._invalidate("life_stack")

    # ── Alerts ─────────────────────────────────────────────────────────────────

    async def list_alerts(self, user_id, *, include_dismissed=False):
        query = (
            select(GuardianAlert)
            .where(GuardianAlert.user_id == user_id)
            .order_by(GuardianAlert.trigger_date.asc())
        )
        if not include_dismissed:
            query = query.where(GuardianAlert.is_dismissed == False)  # noqa: E712
        result = await self.db.execute(query)
        return [AlertResponse.model_validate(a) for a in result.scalars().all()]

    async def get_active_alert(self, user_id, document_id):
        result = await self.db.execute(
            select(GuardianAlert)
            .where(
                GuardianAlert.user_id == user_id,
                GuardianAlert.document_id == document_id,
                GuardianAlert.is_dismissed == False,  # noqa: E712
            )
            .limit(1)
        )
        row = result.scalar_one_or_none()
        return AlertResponse.model_validate(row) if row else None

    async def create_alert(self, user_id, data: AlertCreate):
        row = GuardianAlert(user_id=user_id, is_dismissed=False, is_sent=False, **data.model_dump())
        # Savepoint, so a failed insert leaves the request transaction usable
        async with self.db.begin_nested():
            self.db.add(row)
            await self.db.flush()
        await self.db.refresh(row)
        return AlertResponse.model_validate(row)

    async def dismiss_alert(self, user_id, alert_id):
        result = await self.db.execute(
            select(GuardianAlert).where(GuardianAlert.id == alert_id, GuardianAlert.user_id == user_id)
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFound("Alert not found")
        row.is_dismissed = True
        await self.db.flush()
        return AlertResponse.model_validate(row)

    async def dismiss_alerts_for_document(self, user_id, document_id):
        result = await self.db.execute(
            update(GuardianAlert)
            .where(
                GuardianAlert.user_id == user_id,
                GuardianAlert.document_id == document_id,
                GuardianAlert.is_dismissed == False,  # noqa: E712
            )
            .values(is_dismissed=True)
        )
        return result.rowcount or 0

    # ── Settings ───────────────────────────────────────────────────────────────

    async def get_notification_settings(self, user_id):
        user = await self.db.get(User, user_id)
        if user is None:
            return NotificationSettings()
        return NotificationSettings.model_validate(user)