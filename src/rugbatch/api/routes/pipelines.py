"""Pipeline control and status endpoints."""

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from rugbatch.api.dependencies import get_pipeline_manager
from rugbatch.models.pipeline import Chunk
from rugbatch.pipeline.manager import PipelineManager, PipelineRecord
from rugbatch.pipeline.progress import format_time_remaining

router = APIRouter(prefix="/api/v1", tags=["pipelines"])


def _chunk_row(chunk: Chunk) -> dict:
    snapshot = chunk.job_snapshot
    return {
        "index": chunk.index,
        "size": chunk.size,
        "status": chunk.status.value,
        "job_handle": chunk.job_handle,
        "job_state": snapshot.state.value if snapshot else None,
        "start_time": chunk.start_time.isoformat() if chunk.start_time else None,
        "end_time": chunk.end_time.isoformat() if chunk.end_time else None,
        "error": chunk.error,
        "result_meta": chunk.result_meta.model_dump() if chunk.result_meta else None,
    }


def _describe(record: PipelineRecord) -> dict:
    state = record.controller.state
    progress = record.controller.progress()
    eta = progress.estimated_time_remaining
    return {
        "pipeline_id": record.pipeline_id,
        "filename": record.filename,
        "run_state": state.run_state.value,
        "total_rugs": state.total_items,
        "chunk_size": state.chunk_size,
        "concurrency_limit": state.concurrency_limit,
        "start_time": state.start_time.isoformat() if state.start_time else None,
        "end_time": state.end_time.isoformat() if state.end_time else None,
        "progress": progress.model_dump(),
        "time_remaining": format_time_remaining(eta) if eta is not None else None,
        "chunks": [_chunk_row(c) for c in state.chunks],
    }


@router.get("/pipelines")
async def list_pipelines(manager: PipelineManager = Depends(get_pipeline_manager)):
    return {
        "pipelines": [
            {
                "pipeline_id": r.pipeline_id,
                "filename": r.filename,
                "run_state": r.controller.state.run_state.value,
                "overall_progress": r.controller.progress().overall_progress,
            }
            for r in manager.list_pipelines()
        ]
    }


@router.get("/pipelines/{pipeline_id}")
async def get_pipeline(pipeline_id: str, manager: PipelineManager = Depends(get_pipeline_manager)):
    """Get progress and per-chunk status of a pipeline."""
    return _describe(manager.get(pipeline_id))


@router.post("/pipelines/{pipeline_id}/start")
async def start_pipeline(
    pipeline_id: str, manager: PipelineManager = Depends(get_pipeline_manager)
):
    record = manager.get(pipeline_id)
    record.controller.start()
    return _describe(record)


@router.post("/pipelines/{pipeline_id}/pause")
async def pause_pipeline(
    pipeline_id: str, manager: PipelineManager = Depends(get_pipeline_manager)
):
    record = manager.get(pipeline_id)
    record.controller.pause()
    return _describe(record)


@router.post("/pipelines/{pipeline_id}/resume")
async def resume_pipeline(
    pipeline_id: str, manager: PipelineManager = Depends(get_pipeline_manager)
):
    record = manager.get(pipeline_id)
    record.controller.resume()
    return _describe(record)


@router.post("/pipelines/{pipeline_id}/stop")
async def stop_pipeline(
    pipeline_id: str, manager: PipelineManager = Depends(get_pipeline_manager)
):
    """Cancel all outstanding work for a pipeline."""
    record = manager.get(pipeline_id)
    await record.controller.stop()
    return _describe(record)


@router.delete("/pipelines/{pipeline_id}")
async def delete_pipeline(
    pipeline_id: str, manager: PipelineManager = Depends(get_pipeline_manager)
):
    await manager.discard(pipeline_id)
    return {"pipeline_id": pipeline_id, "status": "deleted"}


@router.get("/pipelines/{pipeline_id}/chunks/{chunk_index}/csv")
async def download_chunk_csv(
    pipeline_id: str,
    chunk_index: int,
    manager: PipelineManager = Depends(get_pipeline_manager),
):
    """Download one chunk of the source catalog as CSV."""
    content, filename = manager.chunk_csv(pipeline_id, chunk_index)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
