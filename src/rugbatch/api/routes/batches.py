"""Direct batch job endpoints: payload preview, status and result extraction."""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from rugbatch.api.dependencies import get_batch_service, get_event_log, get_output_store
from rugbatch.batch.base import BatchJobService
from rugbatch.batch.payload import PayloadAssembler
from rugbatch.batch.results import extract_images
from rugbatch.catalog.csv_reader import process_rows
from rugbatch.eventlog import EventLog
from rugbatch.models.errors import ValidationError
from rugbatch.storage.output_store import OutputStore

router = APIRouter(prefix="/api/v1", tags=["batches"])


class PreviewRequest(BaseModel):
    rows: list[dict[str, str]] = Field(..., min_length=1)
    chunk_index: int = Field(default=0, ge=0)


class ExtractRequest(BaseModel):
    batch_results: str = Field(..., min_length=1)
    key_to_sku: dict[str, str] = Field(default_factory=dict)
    save: bool = False


def _snapshot_body(snapshot) -> dict:
    body = snapshot.model_dump(mode="json")
    body["is_terminal"] = snapshot.state.is_terminal
    return body


@router.post("/batches/preview")
async def preview_payload(
    request: PreviewRequest, events: EventLog = Depends(get_event_log)
):
    """Build the JSONL a chunk would upload, without fetching source images."""
    rugs = process_rows(request.rows)
    assembler = PayloadAssembler(events=events, include_images=False)
    payload = await assembler.assemble(rugs, chunk_index=request.chunk_index)
    jsonl = payload.to_jsonl()
    return {
        "total_requests": payload.request_count,
        "key_to_sku": payload.key_to_sku,
        "jsonl": jsonl,
        "sample": jsonl.splitlines()[:3],
    }


@router.get("/batches/{batch_id}")
async def get_batch_status(
    batch_id: str, service: BatchJobService = Depends(get_batch_service)
):
    snapshot = await service.get_status(batch_id)
    return _snapshot_body(snapshot)


@router.post("/batches/{batch_id}/cancel")
async def cancel_batch(batch_id: str, service: BatchJobService = Depends(get_batch_service)):
    await service.cancel(batch_id)
    return {"batch_id": batch_id, "status": "cancelled"}


@router.delete("/batches/{batch_id}")
async def delete_batch(batch_id: str, service: BatchJobService = Depends(get_batch_service)):
    await service.delete(batch_id)
    return {"batch_id": batch_id, "status": "deleted"}


@router.get("/results")
async def download_results(
    file_name: str = Query(..., min_length=1),
    service: BatchJobService = Depends(get_batch_service),
):
    """Fetch a finished job's raw results file."""
    content = await service.download(file_name)
    lines = [line for line in content.splitlines() if line.strip()]
    return {"file_name": file_name, "result_count": len(lines), "results": content}


@router.post("/results/extract")
async def extract_results(
    request: ExtractRequest,
    store: OutputStore = Depends(get_output_store),
):
    """Pull generated images out of a results file, optionally saving them."""
    extraction = extract_images(request.batch_results, request.key_to_sku)
    if not extraction.total_lines:
        raise ValidationError("Results file has no lines")

    saved_to = None
    errors = list(extraction.errors)
    if request.save and extraction.images:
        folder, write_errors = store.save_images(extraction.images)
        saved_to = str(folder)
        errors.extend(write_errors)

    return {
        "total_lines": extraction.total_lines,
        "images_extracted": len(extraction.images),
        "images": [
            {
                "key": image.key,
                "sku": image.sku,
                "filename": image.filename,
                "mime_type": image.mime_type,
                "description": image.description,
                "data": image.data,
            }
            for image in extraction.images
        ],
        "errors": errors,
        "saved_to": saved_to,
    }
