import uuid
from pathlib import Path

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import FileResponse

from grylin.core.config import settings
from grylin.core.deps import Principal, get_analyzer, get_principal, get_scan_pipeline
from grylin.schemas.scan import (
    RiskCheckRequest,
    RiskResponse,
    ScanResult,
    SummarizeRequest,
    SummarizeResponse,
)
from grylin.services import scam_detector
from grylin.services.analyzer import DocumentAnalyzer
from grylin.services.scan_pipeline import ScanPipeline

router = APIRouter(prefix="/scan", tags=["scan"])

MAX_FILE_SIZE = 20 * 1024 * 1024  # 20 MB
CHUNK_SIZE = 1024 * 1024  # 1 MB streaming chunks

# Client-supplied Content-Type is ignored; the extension decides
_ALLOWED: dict[str, str] = {
    "pdf":  "application/pdf",
    "png":  "image/png",
    "jpg":  "image/jpeg",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
    "heic": "image/heic",
}


def _validate_upload(filename: str) -> str:
    """Return the safe MIME type for the file, or raise 400."""
    ext = Path(filename).suffix.lstrip(".").lower()
    mime = _ALLOWED.get(ext)
    if mime is None:
        allowed = ", ".join(sorted(_ALLOWED))
        raise HTTPException(
            status_code=400,
            detail=f"File type '.{ext}' is not allowed. Allowed: {allowed}",
        )
    return mime


def _scan_dir(user_id: uuid.UUID) -> Path:
    return Path(settings.upload_dir) / "scans" / str(user_id)


# ─── Upload ───────────────────────────────────────────────────────────────────

@router.post("", response_model=ScanResult, status_code=201)
async def scan_document(
    file: UploadFile = File(...),
    user: Principal = Depends(get_principal),
    pipeline: ScanPipeline = Depends(get_scan_pipeline),
):
    original_name = Path(file.filename or "scan.jpg").name
    _validate_upload(original_name)

    # Stream the upload in chunks to avoid loading the entire file into RAM
    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = await file.read(CHUNK_SIZE)
        if not chunk:
            break
        total += len(chunk)
        if total > MAX_FILE_SIZE:
            raise HTTPException(status_code=400, detail="Payload too large (max 20 MB)")
        chunks.append(chunk)

    stored_name = f"{uuid.uuid4()}_{original_name}"
    dir_path = _scan_dir(user.id)
    dir_path.mkdir(parents=True, exist_ok=True)
    path = dir_path / stored_name
    path.write_bytes(b"".join(chunks))

    return await pipeline.scan(user.id, path, image_url=f"/api/v1/scan/files/{stored_name}")


@router.get("/files/{stored_name}")
async def download_scan(stored_name: str, user: Principal = Depends(get_principal)):
    # Only plain names: no path components from the client
    if Path(stored_name).name != stored_name:
        raise HTTPException(status_code=404, detail="File not found")
    file_path = _scan_dir(user.id) / stored_name
    if not file_path.exists():
        raise HTTPException(status_code=404, detail="File not found")
    return FileResponse(path=str(file_path), media_type=_validate_upload(stored_name))


# ─── Text helpers ─────────────────────────────────────────────────────────────

@router.post("/risk", response_model=RiskResponse)
async def assess_risk(payload: RiskCheckRequest, user: Principal = Depends(get_principal)):
    """Rule-based scam check of pasted text (SMS, email body, letter)."""
    risk = scam_detector.assess(payload.content, payload.sender)
    return RiskResponse(
        risk_score=risk.risk_score,
        indicators=risk.indicators,
        is_scam=risk.is_scam,
        recommendation=risk.recommendation,
    )


@router.post("/summarize", response_model=SummarizeResponse)
async def summarize(
    payload: SummarizeRequest,
    user: Principal = Depends(get_principal),
    analyzer: DocumentAnalyzer = Depends(get_analyzer),
):
    return SummarizeResponse(bullets=await analyzer.summarize_text(payload.text))
