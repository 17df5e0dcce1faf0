import uuid
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Query

from grylin.core.deps import Principal, get_analyzer, get_principal, get_storage
from grylin.schemas.document import (
    DocumentCreate,
    DocumentResponse,
    DocumentStatus,
    DocumentUpdate,
    InsightResponse,
)
from grylin.services import alert_scheduler, documents
from grylin.services.analyzer import DocumentAnalyzer
from grylin.services.scan_pipeline import file_document
from grylin.storage.base import StorageBackend

router = APIRouter(prefix="/documents", tags=["documents"])


async def _get_or_404(storage: StorageBackend, user: Principal, document_id: uuid.UUID) -> DocumentResponse:
    document = await storage.get_document(user.id, document_id)
    if document is None:
        raise HTTPException(status_code=404, detail="Document not found")
    return document


# ─── List ────────────────────────────────────────────────────────────────────

@router.get("", response_model=list[DocumentResponse])
async def list_documents(
    status: DocumentStatus | None = Query(None),
    folder_id: uuid.UUID | None = None,
    life_stack_id: uuid.UUID | None = None,
    user: Principal = Depends(get_principal),
    storage: StorageBackend = Depends(get_storage),
):
    return await storage.list_documents(
        user.id, status=status, folder_id=folder_id, life_stack_id=life_stack_id
    )


@router.get("/upcoming", response_model=list[DocumentResponse])
async def list_upcoming(
    user: Principal = Depends(get_principal),
    storage: StorageBackend = Depends(get_storage),
):
    """Unpaid documents with a due date, soonest first."""
    return await storage.list_upcoming(user.id)


@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(
    document_id: uuid.UUID,
    user: Principal = Depends(get_principal),
    storage: StorageBackend = Depends(get_storage),
):
    return await _get_or_404(storage, user, document_id)


# ─── Create / update ──────────────────────────────────────────────────────────

@router.post("", response_model=DocumentResponse, status_code=201)
async def create_document(
    payload: DocumentCreate,
    user: Principal = Depends(get_principal),
    storage: StorageBackend = Depends(get_storage),
):
    # Auto-routing only when the client did not place the document itself
    if payload.folder_id is None and payload.life_stack_id is None:
        return (await file_document(storage, user.id, payload)).document

    document = await storage.create_document(user.id, payload)
    prefs = await storage.get_notification_settings(user.id)
    await alert_scheduler.schedule_for_document(storage, user.id, document, prefs)
    return document


@router.patch("/{document_id}", response_model=DocumentResponse)
async def update_document(
    document_id: uuid.UUID,
    payload: DocumentUpdate,
    user: Principal = Depends(get_principal),
    storage: StorageBackend = Depends(get_storage),
):
    await _get_or_404(storage, user, document_id)
    document = await storage.update_document(user.id, document_id, **payload.model_dump(exclude_unset=True))

    if "due_date" in payload.model_fields_set:
        prefs = await storage.get_notification_settings(user.id)
        await alert_scheduler.schedule_for_document(storage, user.id, document, prefs)
    return document


# ─── Lifecycle ────────────────────────────────────────────────────────────────

@router.post("/{document_id}/mark-paid", response_model=DocumentResponse)
async def mark_paid(
    document_id: uuid.UUID,
    user: Principal = Depends(get_principal),
    storage: StorageBackend = Depends(get_storage),
):
    return await documents.mark_paid(storage, user.id, document_id)


@router.post("/{document_id}/archive", response_model=DocumentResponse)
async def archive(
    document_id: uuid.UUID,
    user: Principal = Depends(get_principal),
    storage: StorageBackend = Depends(get_storage),
):
    return await documents.archive(storage, user.id, document_id)


@router.delete("/{document_id}", status_code=204)
async def delete_document(
    document_id: uuid.UUID,
    user: Principal = Depends(get_principal),
    storage: StorageBackend = Depends(get_storage),
):
    await documents.delete_document(storage, user.id, document_id)


# ─── Insight ──────────────────────────────────────────────────────────────────

@router.post("/{document_id}/insight", response_model=InsightResponse)
async def document_insight(
    document_id: uuid.UUID,
    user: Principal = Depends(get_principal),
    storage: StorageBackend = Depends(get_storage),
    analyzer: DocumentAnalyzer = Depends(get_analyzer),
):
    """Obligation / deadline / consequence summary of a stored document."""
    document = await _get_or_404(storage, user, document_id)
    lines = [document.title, *document.summary]
    if document.due_date:
        lines.append(f"Due: {document.due_date.date().isoformat()}")
    if document.amount is not None:
        lines.append(f"Amount: {document.amount:.2f}")
    insight = await analyzer.generate_insight_summary("\n".join(lines))
    return InsightResponse(**asdict(insight))
