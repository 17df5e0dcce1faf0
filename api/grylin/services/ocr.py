"""
Text extraction for uploaded documents.

PDFs with a text layer are read locally with pdfplumber (fast path).
Everything else is posted to the OCR service, which answers with
``{"lines": [...], "confidence": 0.0-1.0}``.  Any failure, including an
empty result, raises ExtractionFailure so the scan pipeline can fall back
to the vision model.
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path

import httpx
import pdfplumber

from grylin.core.config import settings
from grylin.core.errors import ExtractionFailure

logger = logging.getLogger(__name__)

# Text-layer PDFs are exact; report full confidence
_PDF_CONFIDENCE = 1.0


@dataclass
class OcrResult:
    full_text: str
    lines: list[str] = field(default_factory=list)
    confidence: float = 0.0


def extract_pdf_text(file_path: str | Path) -> str | None:
    """All selectable text of a PDF, pages joined by blank lines; None if there is none."""
    path = Path(file_path)
    if path.suffix.lower() != ".pdf":
        return None
    try:
        with pdfplumber.open(path) as pdf:
            pages = []
            for page in pdf.pages:
                text = page.extract_text()
                if text and text.strip():
                    pages.append(text.strip())
    except Exception as exc:
        logger.warning("PDF text extraction failed for %s: %s", path.name, exc)
        return None
    return "\n\n".join(pages) or None


def _lines_from_payload(data: dict) -> list[str]:
    raw = data.get("lines")
    if raw is None and isinstance(data.get("text"), str):
        raw = data["text"].splitlines()
    return [str(line).strip() for line in raw or [] if str(line).strip()]


class OcrClient:
    def __init__(self, base_url: str | None = None, *, http: httpx.AsyncClient | None = None):
        self.base_url = (base_url or settings.ocr_url).rstrip("/")
        self._http = http

    async def _recognize(self, path: Path) -> dict:
        files = {"file": (path.name, path.read_bytes())}
        url = f"{self.base_url}/recognize"
        if self._http is not None:
            resp = await self._http.post(url, files=files)
        else:
            async with httpx.AsyncClient(timeout=settings.ocr_timeout_seconds) as client:
                resp = await client.post(url, files=files)
        resp.raise_for_status()
        return resp.json()

    async def extract_text(self, image_path: str | Path) -> OcrResult:
        path = Path(image_path)

        pdf_text = extract_pdf_text(path)
        if pdf_text:
            lines = [line.strip() for line in pdf_text.splitlines() if line.strip()]
            logger.info("PDF text layer used for %s (%d lines)", path.name, len(lines))
            return OcrResult(full_text="\n".join(lines), lines=lines, confidence=_PDF_CONFIDENCE)

        try:
            data = await self._recognize(path)
        except (httpx.HTTPError, OSError, ValueError) as e:
            raise ExtractionFailure(f"OCR failed: {e}") from e

        if not isinstance(data, dict):
            raise ExtractionFailure("OCR failed: unexpected response")
        lines = _lines_from_payload(data)
        if not lines:
            raise ExtractionFailure("OCR failed: no text recognised")

        confidence = data.get("confidence")
        result = OcrResult(
            full_text="\n".join(lines),
            lines=lines,
            confidence=float(confidence) if isinstance(confidence, (int, float)) else 0.0,
        )
        logger.info("OCR read %d lines / %d chars from %s", len(lines), len(result.full_text), path.name)
        return result

