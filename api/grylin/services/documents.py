"""
Document lifecycle operations.

Each operation lists every side effect it has, so callers never chain the
secondary updates themselves:

  mark_paid        status new → paid; dismiss the document's active alerts
  archive          status new → archived; dismiss the document's active alerts
  delete_document  dismiss active alerts; delete the document
  delete_folder    null folder_id on its documents; delete the folder
  delete_stack     null life_stack_id on its documents; delete the stack

Status only moves forward out of "new"; anything else raises
InvalidStatusTransition.
"""
import logging
import uuid

from grylin.core.errors import InvalidStatusTransition, NotFound
from grylin.schemas.document import DocumentResponse
from grylin.storage.base import StorageBackend

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "new": frozenset({"paid", "archived"}),
    "paid": frozenset(),
    "archived": frozenset(),
}


def check_transition(current: str, target: str) -> None:
    if target not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        raise InvalidStatusTransition(current, target)


async def _require(storage: StorageBackend, user_id: uuid.UUID, document_id: uuid.UUID) -> DocumentResponse:
    document = await storage.get_document(user_id, document_id)
    if document is None:
        raise NotFound("Document not found")
    return document


async def _transition(
    storage: StorageBackend, user_id: uuid.UUID, document_id: uuid.UUID, target: str
) -> DocumentResponse:
    document = await _require(storage, user_id, document_id)
    check_transition(document.status, target)

    updated = await storage.update_document(user_id, document_id, status=target)
    dismissed = await storage.dismiss_alerts_for_document(user_id, document_id)
    logger.info("Document %s → %s (%d alert(s) dismissed)", document_id, target, dismissed)
    return updated


async def mark_paid(storage: StorageBackend, user_id: uuid.UUID, document_id: uuid.UUID) -> DocumentResponse:
    return await _transition(storage, user_id, document_id, "paid")


async def archive(storage: StorageBackend, user_id: uuid.UUID, document_id: uuid.UUID) -> DocumentResponse:
    return await _transition(storage, user_id, document_id, "archived")


async def delete_document(storage: StorageBackend, user_id: uuid.UUID, document_id: uuid.UUID) -> None:
    await _require(storage, user_id, document_id)
    await storage.dismiss_alerts_for_document(user_id, document_id)
    await storage.remove_document(user_id, document_id)
    logger.info("Deleted document %s", document_id)


async def delete_folder(storage: StorageBackend, user_id: uuid.UUID, folder_id: uuid.UUID) -> int:
    """Returns the number of documents that were moved out of the folder."""
    detached = await storage.detach_folder(user_id, folder_id)
    await storage.remove_folder(user_id, folder_id)
    logger.info("Deleted folder %s (%d document(s) detached)", folder_id, detached)
    return detached


async def delete_stack(storage: StorageBackend, user_id: uuid.UUID, stack_id: uuid.UUID) -> int:
    detached = await storage.detach_stack(user_id, stack_id)
    await storage.remove_stack(user_id, stack_id)
    logger.info("Deleted life stack %s (%d document(s) detached)", stack_id, detached)
    return detached
