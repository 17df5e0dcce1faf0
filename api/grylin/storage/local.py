"""
Local JSON storage backend for demo / offline sessions.

One file per user under ``settings.local_store_dir``::

    {"documents": [...], "folders": [...], "stacks": [...],
     "alerts": [...], "settings": {...}}

Records are the JSON dumps of the response schemas, so reads come back as
the same types SqlStorage returns.  Writes go to a temp file first and are
moved into place.  One asyncio.Lock serialises all access per instance.
"""
import asyncio
import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path

from grylin.core.config import settings
from grylin.core.errors import NotFound
from grylin.schemas.alert import AlertCreate, AlertResponse
from grylin.schemas.document import DocumentCreate, DocumentResponse
from grylin.schemas.folder import FolderResponse
from grylin.schemas.life_stack import LifeStackCreate, LifeStackResponse, LifeStackUpdate
from grylin.schemas.user import NotificationSettings

logger = logging.getLogger(__name__)

_SECTIONS = ("documents", "folders", "stacks", "alerts")


def _now() -> datetime:
    return datetime.now(timezone.utc)


class LocalStorage:
    def __init__(self, base_dir: str | Path | None = None):
        self.base_dir = Path(base_dir or settings.local_store_dir)
        self._lock = asyncio.Lock()

    # ── File handling ──────────────────────────────────────────────────────────

    def _path(self, user_id: uuid.UUID) -> Path:
        return self.base_dir / f"{user_id}.json"

    def _load(self, user_id: uuid.UUID) -> dict:
        path = self._path(user_id)
        data: dict = {}
        if path.exists():
            with open(path) as f:
                data = json.load(f)
        for section in _SECTIONS:
            data.setdefault(section, [])
        data.setdefault("settings", {})
        return data

    def _save(self, user_id: uuid.UUID, data: dict) -> None:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        path = self._path(user_id)
        tmp = path.with_suffix(".json.tmp")
        with open(tmp, "w") as f:
            json.dump(data, f, indent=2)
        tmp.replace(path)

    @staticmethod
    def _find(records: list[dict], record_id: uuid.UUID) -> dict | None:
        wanted = str(record_id)
        return next((r for r in records if r["id"] == wanted), None)

    # ── Documents ──────────────────────────────────────────────────────────────

    async def list_documents(self, user_id, *, status=None, folder_id=None, life_stack_id=None):
        async with self._lock:
            data = self._load(user_id)
        docs = [DocumentResponse.model_validate(d) for d in data["documents"]]
        if status is not None:
            docs = [d for d in docs if d.status == status]
        if folder_id is not None:
            docs = [d for d in docs if d.folder_id == folder_id]
        if life_stack_id is not None:
            docs = [d for d in docs if d.life_stack_id == life_stack_id]
        return sorted(docs, key=lambda d: d.created_at, reverse=True)

    async def list_upcoming(self, user_id):
        docs = await self.list_documents(user_id, status="new")
        return sorted((d for d in docs if d.due_date is not None), key=lambda d: d.due_date)

    async def get_document(self, user_id, document_id):
        async with self._lock:
            data = self._load(user_id)
        record = self._find(data["documents"], document_id)
        return DocumentResponse.model_validate(record) if record else None

    async def create_document(self, user_id, data: DocumentCreate):
        doc = DocumentResponse(
            id=uuid.uuid4(), user_id=user_id, status="new", created_at=_now(), **data.model_dump()
        )
        async with self._lock:
            store = self._load(user_id)
            store["documents"].append(doc.model_dump(mode="json"))
            self._save(user_id, store)
        return doc

    async def update_document(self, user_id, document_id, **fields):
        async with self._lock:
            store = self._load(user_id)
            record = self._find(store["documents"], document_id)
            if record is None:
                raise NotFound("Document not found")
            doc = DocumentResponse.model_validate({**record, **fields})
            record.clear()
            record.update(doc.model_dump(mode="json"))
            self._save(user_id, store)
        return doc

    async def remove_document(self, user_id, document_id):
        wanted = str(document_id)
        async with self._lock:
            store = self._load(user_id)
            store["documents"] = [d for d in store["documents"] if d["id"] != wanted]
            # Alerts belong to their document, like ON DELETE CASCADE
            store["alerts"] = [a for a in store["alerts"] if a["document_id"] != wanted]
            self._save(user_id, store)

    async def _detach(self, user_id, field: str, target_id: uuid.UUID) -> int:
        wanted = str(target_id)
        touched = 0
        async with self._lock:
            store = self._load(user_id)
            for record in store["documents"]:
                if record.get(field) == wanted:
                    record[field] = None
                    touched += 1
            self._save(user_id, store)
        return touched

    async def detach_folder(self, user_id, folder_id):
        return await self._detach(user_id, "folder_id", folder_id)

    async def detach_stack(self, user_id, stack_id):
        return await self._detach(user_id, "life_stack_id", stack_id)

    # ── Folders ────────────────────────────────────────────────────────────────

    async def list_folders(self, user_id):
        async with self._lock:
            store = self._load(user_id)
        counts: dict[str, int] = {}
        for d in store["documents"]:
            if d.get("folder_id"):
                counts[d["folder_id"]] = counts.get(d["folder_id"], 0) + 1
        folders = [
            FolderResponse.model_validate({**f, "item_count": counts.get(f["id"], 0)})
            for f in store["folders"]
        ]
        return sorted(folders, key=lambda f: f.name)

    async def create_folder(self, user_id, name):
        folder = FolderResponse(id=uuid.uuid4(), user_id=user_id, name=name, created_at=_now())
        async with self._lock:
            store = self._load(user_id)
            store["folders"].append(folder.model_dump(mode="json", exclude={"item_count"}))
            self._save(user_id, store)
        return folder

    async def remove_folder(self, user_id, folder_id):
        wanted = str(folder_id)
        async with self._lock:
            store = self._load(user_id)
            remaining = [f for f in store["folders"] if f["id"] != wanted]
            if len(remaining) == len(store["folders"]):
                raise NotFound("Folder not found")
            store["folders"] = remaining
            self._save(user_id, store)

    # ── Life stacks ────────────────────────────────────────────────────────────

    async def list_stacks(self, user_id):
        async with self._lock:
            store = self._load(user_id)
        counts: dict[str, int] = {}
        for d in store["documents"]:
            if d.get("life_stack_id"):
                counts[d["life_stack_id"]] = counts.get(d["life_stack_id"], 0) + 1
        stacks = [
            LifeStackResponse.model_validate({**s, "item_count": counts.get(s["id"], 0)})
            for s in store["stacks"]
        ]
        return sorted(stacks, key=lambda s: s.created_at)

    async def create_stack(self, user_id, data: LifeStackCreate):
        stack = LifeStackResponse(id=uuid.uuid4(), user_id=user_id, created_at=_now(), **data.model_dump())
        async with self._lock:
            store = self._load(user_id)
            store["stacks"].append(stack.model_dump(mode="json", exclude={"item_count"}))
            self._save(user_id, store)
        return stack

    async def update_stack(self, user_id, stack_id, data: LifeStackUpdate):
        changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
        async with self._lock:
            store = self._load(user_id)
            record = self._find(store["stacks"], stack_id)
            if record is None:
                raise NotFound("Life stack not found")
            record.update(changes)
            self._save(user_id, store)
        return LifeStackResponse.model_validate(record)

    async def remove_stack(self, user_id, stack_id):
        wanted = str(stack_id)
        async with self._lock:
            store = self._load(user_id)
            remaining = [s for s in store["stacks"] if s["id"] != wanted]
            if len(remaining) == len(store["stacks"]):
                raise NotFound("Life stack not found")
            store["stacks"] = remaining
            self._save(user_id, store)

    # ── Alerts ─────────────────────────────────────────────────────────────────

    async def list_alerts(self, user_id, *, include_dismissed=False):
        async with self._lock:
            store = self._load(user_id)
        alerts = [AlertResponse.model_validate(a) for a in store["alerts"]]
        if not include_dismissed:
            alerts = [a for a in alerts if not a.is_dismissed]
        return sorted(alerts, key=lambda a: a.trigger_date)

    async def get_active_alert(self, user_id, document_id):
        wanted = str(document_id)
        async with self._lock:
            store = self._load(user_id)
        for a in store["alerts"]:
            if a["document_id"] == wanted and not a["is_dismissed"]:
                return AlertResponse.model_validate(a)
        return None

    async def create_alert(self, user_id, data: AlertCreate):
        alert = AlertResponse(
            id=uuid.uuid4(),
            user_id=user_id,
            is_dismissed=False,
            is_sent=False,
            created_at=_now(),
            **data.model_dump(),
        )
        async with self._lock:
            store = self._load(user_id)
            store["alerts"].append(alert.model_dump(mode="json"))
            self._save(user_id, store)
        return alert

    async def dismiss_alert(self, user_id, alert_id):
        async with self._lock:
            store = self._load(user_id)
            record = self._find(store["alerts"], alert_id)
            if record is None:
                raise NotFound("Alert not found")
            record["is_dismissed"] = True
            self._save(user_id, store)
        return AlertResponse.model_validate(record)

    async def dismiss_alerts_for_document(self, user_id, document_id):
        wanted = str(document_id)
        dismissed = 0
        async with self._lock:
            store = self._load(user_id)
            for a in store["alerts"]:
                if a["document_id"] == wanted and not a["is_dismissed"]:
                    a["is_dismissed"] = True
                    dismissed += 1
            self._save(user_id, store)
        return dismissed

    # ── Settings ───────────────────────────────────────────────────────────────

    async def get_notification_settings(self, user_id):
        async with self._lock:
            store = self._load(user_id)
        return NotificationSettings.model_validate(store["settings"])

    async def save_notification_settings(self, user_id, new: NotificationSettings) -> NotificationSettings:
        async with self._lock:
            store = self._load(user_id)
            store["settings"] = new.model_dump()
            self._save(user_id, store)
        return new
