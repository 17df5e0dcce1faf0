"""
Folder router: picks the vault folder for a document.

Two ordered tables, first match wins:

  1. document-type keywords checked against the lowercased title
     ("electric bill" → "Utility Bills", "pan card" → "PAN Card", ...)
  2. category fallback ("Finance" → "Finance Documents", ...)

Order matters where keywords overlap ("credit card" must beat "card",
"bank statement" must beat "statement"), so both tables are tuples.
"""
import logging
import uuid

from grylin.schemas.folder import FolderResponse
from grylin.storage.base import StorageBackend

logger = logging.getLogger(__name__)

DOCUMENT_FOLDER_RULES: tuple[tuple[str, str], ...] = (
    # Identity documents
    ("driving licence", "Driving Licence"),
    ("driving license", "Driving Licence"),
    ("learner's licence", "Driving Licence"),
    ("pan card", "PAN Card"),
    ("permanent account", "PAN Card"),
    ("aadhaar", "Aadhaar Card"),
    ("aadhar", "Aadhaar Card"),
    ("passport", "Passport"),
    ("voter id", "Voter ID"),
    ("election", "Voter ID"),
    ("vehicle rc", "Vehicle RC"),
    ("registration certificate", "Vehicle RC"),
    # Banking
    ("credit card", "Credit Cards"),
    ("debit card", "Bank Cards"),
    ("bank statement", "Bank Statements"),
    # Bills
    ("electricity", "Utility Bills"),
    ("electric bill", "Utility Bills"),
    ("water bill", "Utility Bills"),
    ("gas bill", "Utility Bills"),
    ("phone bill", "Utility Bills"),
    ("mobile bill", "Utility Bills"),
    ("internet bill", "Utility Bills"),
    # Insurance and health
    ("insurance", "Insurance"),
    ("policy", "Insurance"),
    ("medical", "Medical Records"),
    ("hospital", "Medical Records"),
    ("prescription", "Medical Records"),
    # Purchases
    ("invoice", "Invoices & Receipts"),
    ("receipt", "Invoices & Receipts"),
    # Education and work
    ("certificate", "Certificates"),
    ("marksheet", "Education"),
    ("degree", "Education"),
    ("salary slip", "Salary & Income"),
    ("payslip", "Salary & Income"),
    # Tax
    ("tax", "Tax Documents"),
    ("itr", "Tax Documents"),
    ("form 16", "Tax Documents"),
)

CATEGORY_FOLDERS: tuple[tuple[str, str], ...] = (
    ("Finance", "Finance Documents"),
    ("Health", "Medical Records"),
    ("Shopping", "Shopping & Orders"),
    ("Education", "Education"),
    ("Career", "Career & Work"),
    ("Other", "Other Documents"),
)

DEFAULT_FOLDER = "Other Documents"


def resolve_folder_name(title: str, category: str) -> str:
    lower = (title or "").lower()
    for keyword, folder in DOCUMENT_FOLDER_RULES:
        if keyword in lower:
            return folder
    for cat, folder in CATEGORY_FOLDERS:
        if cat == category:
            return folder
    return DEFAULT_FOLDER


def match_folder(name: str, folders: list[FolderResponse]) -> FolderResponse | None:
    """Case-insensitive name lookup; first folder in list order wins."""
    wanted = name.strip().lower()
    for folder in folders:
        if folder.name.strip().lower() == wanted:
            return folder
    return None


async def find_or_create_folder(
    storage: StorageBackend, user_id: uuid.UUID, title: str, category: str
) -> FolderResponse:
    name = resolve_folder_name(title, category)
    existing = match_folder(name, await storage.list_folders(user_id))
    if existing is not None:
        return existing

    folder = await storage.create_folder(user_id, name)
    logger.info("Created folder %r for user %s", name, user_id)
    return folder
