"""
Storage backend interface.

Every domain operation receives a StorageBackend explicitly; the backend is
chosen once per request (SqlStorage for signed-in users, LocalStorage for
demo/offline sessions) and never switched mid-flight.

All methods are scoped by ``user_id``; a row owned by another user behaves
exactly like a missing one.  Methods return pydantic response models so the
two backends are interchangeable.
"""
import uuid
from typing import Protocol

from grylin.schemas.alert import AlertCreate, AlertResponse
from grylin.schemas.document import DocumentCreate, DocumentResponse
from grylin.schemas.folder import FolderResponse
from grylin.schemas.life_stack import LifeStackCreate, LifeStackResponse, LifeStackUpdate
from grylin.schemas.user import NotificationSettings


class StorageBackend(Protocol):
    # ── Documents ──────────────────────────────────────────────────────────
    async def list_documents(
        self,
        user_id: uuid.UUID,
        *,
        status: str | None = None,
        folder_id: uuid.UUID | None = None,
        life_stack_id: uuid.UUID | None = None,
    ) -> list[DocumentResponse]: ...

    async def list_upcoming(self, user_id: uuid.UUID) -> list[DocumentResponse]:
        """Unpaid documents with a due date, soonest first."""
        ...

    async def get_document(self, user_id: uuid.UUID, document_id: uuid.UUID) -> DocumentResponse | None: ...

    async def create_document(self, user_id: uuid.UUID, data: DocumentCreate) -> DocumentResponse: ...

    async def update_document(self, user_id: uuid.UUID, document_id: uuid.UUID, **fields) -> DocumentResponse:
        """Raises NotFound when the document does not exist for this user."""
        ...

    async def remove_document(self, user_id: uuid.UUID, document_id: uuid.UUID) -> None: ...

    async def detach_folder(self, user_id: uuid.UUID, folder_id: uuid.UUID) -> int:
        """Null ``folder_id`` on every document in the folder; returns rows touched."""
        ...

    async def detach_stack(self, user_id: uuid.UUID, stack_id: uuid.UUID) -> int: ...

    # ── Folders ────────────────────────────────────────────────────────────
    async def list_folders(self, user_id: uuid.UUID) -> list[FolderResponse]: ...

    async def create_folder(self, user_id: uuid.UUID, name: str) -> FolderResponse: ...

    async def remove_folder(self, user_id: uuid.UUID, folder_id: uuid.UUID) -> None: ...

    # ── Life stacks ────────────────────────────────────────────────────────
    async def list_stacks(self, user_id: uuid.UUID) -> list[LifeStackResponse]: ...

    async def create_stack(self, user_id: uuid.UUID, data: LifeStackCreate) -> LifeStackResponse: ...

    async def update_stack(
        self, user_id: uuid.UUID, stack_id: uuid.UUID, data: LifeStackUpdate
    ) -> LifeStackResponse: ...

    async def remove_stack(self, user_id: uuid.UUID, stack_id: uuid.UUID) -> None: ...

    # ── Alerts ─────────────────────────────────────────────────────────────
    async def list_alerts(self, user_id: uuid.UUID, *, include_dismissed: bool = False) -> list[AlertResponse]: ...

    async def get_active_alert(self, user_id: uuid.UUID, document_id: uuid.UUID) -> AlertResponse | None: ...

    async def create_alert(self, user_id: uuid.UUID, data: AlertCreate) -> AlertResponse: ...

    async def dismiss_alert(self, user_id: uuid.UUID, alert_id: uuid.UUID) -> AlertResponse: ...

    async def dismiss_alerts_for_document(self, user_id: uuid.UUID, document_id: uuid.UUID) -> int: ...

    # ── Settings ───────────────────────────────────────────────────────────
    async def get_notification_settings(self, user_id: uuid.UUID) -> NotificationSettings: ...
