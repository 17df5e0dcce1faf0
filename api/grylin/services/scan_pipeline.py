"""
Scan pipeline: one uploaded image or PDF in, one stored document out.

  1. Extract text (PDF text layer, else the OCR service)
  2. More than MIN_OCR_CHARS of text → text analysis; otherwise the vision
     model reads the image.  Demo sessions fall back to a fixed mock
     analysis when neither path works.
  3. Scam assessment over the extracted text
  4. Folder and life stack routing
  5. Persist the document
  6. Scam warning on a positive verdict, otherwise the deadline alert

Steps 4-6 live in ``file_document`` so the email sync files its documents
the same way.  Errors from steps 1-2 that leave no analysis propagate;
alert creation after the document is stored is best effort.
"""
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path

from grylin.core.errors import CompletionError, ExtractionFailure
from grylin.schemas.alert import AlertResponse
from grylin.schemas.document import DocumentCreate, DocumentResponse
from grylin.schemas.folder import FolderResponse
from grylin.schemas.scan import ExtractedAnalysis, RiskResponse, ScanResult
from grylin.schemas.user import NotificationSettings
from grylin.services import alert_scheduler, scam_detector
from grylin.services.analyzer import DocumentAnalyzer, as_due_datetime, mock_analysis
from grylin.services.completion import image_data_uri
from grylin.services.folder_router import find_or_create_folder
from grylin.services.ocr import OcrClient
from grylin.services.stack_router import route
from grylin.storage.base import StorageBackend

logger = logging.getLogger(__name__)

MIN_OCR_CHARS = 10


@dataclass
class Extraction:
    analysis: ExtractedAnalysis
    text: str
    method: str  # "ocr" | "vision" | "mock"


@dataclass
class Filed:
    document: DocumentResponse
    folder: FolderResponse
    alert: AlertResponse | None


def merge_risk(data: DocumentCreate, risk: scam_detector.RiskAssessment) -> None:
    """Fold a rule-based assessment into a document's own scam fields."""
    data.is_scam = data.is_scam or risk.is_scam
    data.risk_score = max(data.risk_score, risk.risk_score)
    data.scam_indicators = risk.indicators + [i for i in data.scam_indicators if i not in risk.indicators]


async def file_document(
    storage: StorageBackend,
    user_id: uuid.UUID,
    data: DocumentCreate,
    prefs: NotificationSettings | None = None,
) -> Filed:
    """Route ``data`` to a folder and life stack, store it, raise its alert."""
    folder = await find_or_create_folder(storage, user_id, data.title, data.category)
    data.folder_id = folder.id
    data.life_stack_id = route(data, await storage.list_stacks(user_id))

    document = await storage.create_document(user_id, data)
    logger.info(
        "Filed %r (%s) → folder %r, stack %s, risk %d",
        document.title, document.source_type, folder.name, document.life_stack_id, document.risk_score,
    )

    alert = None
    try:
        prefs = prefs or await storage.get_notification_settings(user_id)
        if document.is_scam:
            alert = await alert_scheduler.create_scam_warning(storage, user_id, document, prefs)
        else:
            alert = await alert_scheduler.schedule_for_document(storage, user_id, document, prefs)
    except Exception as exc:
        # The document is stored; the daily deadline check can still raise its alert
        logger.warning("Alert step skipped for document %s: %s", document.id, exc)
    return Filed(document, folder, alert)


class ScanPipeline:
    def __init__(
        self,
        storage: StorageBackend,
        analyzer: DocumentAnalyzer,
        ocr: OcrClient,
        *,
        demo: bool = False,
    ):
        self.storage = storage
        self.analyzer = analyzer
        self.ocr = ocr
        self.demo = demo

    async def extract(self, image_path: str | Path) -> Extraction:
        text = ""
        try:
            text = (await self.ocr.extract_text(image_path)).full_text
        except ExtractionFailure as exc:
            logger.warning("OCR unavailable for %s: %s", Path(image_path).name, exc)

        if len(text.strip()) > MIN_OCR_CHARS:
            return Extraction(await self.analyzer.analyze_document_text(text), text, "ocr")

        try:
            analysis = await self.analyzer.analyze_document_image(image_data_uri(image_path))
        except (CompletionError, OSError) as exc:
            if not self.demo:
                raise ExtractionFailure(f"Vision API error: {exc}") from exc
            logger.info("Demo session: using mock analysis (%s)", exc)
            return Extraction(mock_analysis(), "", "mock")
        return Extraction(analysis, "", "vision")

    async def scan(
        self,
        user_id: uuid.UUID,
        image_path: str | Path,
        image_url: str | None = None,
    ) -> ScanResult:
        extraction = await self.extract(image_path)
        analysis = extraction.analysis
        logger.info("Extracted %r via %s", analysis.title, extraction.method)

        # The assessor sees the OCR text when there is some, else the analysis itself
        content = extraction.text or " ".join([analysis.title, *analysis.summary_bullets])
        risk = scam_detector.assess(content)

        data = DocumentCreate(
            title=analysis.title,
            category=analysis.category,
            amount=analysis.amount,
            due_date=as_due_datetime(analysis.due_date),
            summary=analysis.summary_bullets,
            is_scam=analysis.is_scam,
            risk_score=analysis.risk_score or 0,
            scam_indicators=analysis.scam_indicators or [],
            source_type="scan",
            image_url=image_url,
        )
        merge_risk(data, risk)
        filed = await file_document(self.storage, user_id, data)

        return ScanResult(
            document_id=filed.document.id,
            analysis=analysis,
            image_url=image_url,
            auto_assigned_folder_id=filed.folder.id,
            auto_assigned_folder_name=filed.folder.name,
            auto_assigned_stack_id=filed.document.life_stack_id,
            alert_created=filed.alert is not None,
            alert_type=filed.alert.alert_type if filed.alert else None,
            risk=RiskResponse(
                risk_score=risk.risk_score,
                indicators=risk.indicators,
                is_scam=risk.is_scam,
                recommendation=risk.recommendation,
            ),
        )
