"""Catalog upload endpoint."""

from fastapi import APIRouter, Depends, Query, UploadFile

from rugbatch.api.dependencies import get_pipeline_manager
from rugbatch.catalog.csv_reader import read_rows
from rugbatch.models.errors import ValidationError
from rugbatch.pipeline.manager import PipelineManager

router = APIRouter(prefix="/api/v1", tags=["upload"])

PREVIEW_SIZE = 5


@router.post("/upload")
async def upload_catalog(
    file: UploadFile,
    chunk_size: int | None = Query(default=None, gt=0),
    concurrency_limit: int | None = Query(default=None, gt=0),
    manager: PipelineManager = Depends(get_pipeline_manager),
):
    """Upload a rug catalog CSV and create an idle pipeline for it."""
    if not file.filename:
        raise ValidationError("No file uploaded")
    if not file.filename.lower().endswith(".csv"):
        raise ValidationError("File must be a CSV")

    rows = read_rows(await file.read())
    record = manager.create_pipeline(
        rows,
        filename=file.filename,
        chunk_size=chunk_size,
        concurrency_limit=concurrency_limit,
    )
    state = record.controller.state
    rugs = [rug for chunk in state.chunks for rug in chunk.items]
    return {
        "pipeline_id": record.pipeline_id,
        "filename": file.filename,
        "total_rugs": state.total_items,
        "total_chunks": state.total_chunks,
        "chunk_size": state.chunk_size,
        "concurrency_limit": state.concurrency_limit,
        "preview": [rug.model_dump(mode="json") for rug in rugs[:PREVIEW_SIZE]],
        "has_more": len(rugs) > PREVIEW_SIZE,
        "message": f"Successfully processed {state.total_items} rugs",
    }
