"""Saved image browsing, archives and one-off generation."""

from datetime import date

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from pydantic import BaseModel, Field

from rugbatch.api.dependencies import get_image_generator, get_output_store
from rugbatch.imagegen.direct import DirectImageGenerator, PromptRequest
from rugbatch.storage.output_store import OutputStore

router = APIRouter(prefix="/api/v1", tags=["images"])


class GenerateRequest(BaseModel):
    prompts: list[PromptRequest] = Field(..., min_length=1)


@router.get("/images/dates")
async def list_image_dates(store: OutputStore = Depends(get_output_store)):
    return {"dates": store.list_dates()}


@router.get("/images/archive")
async def download_archive(
    day: str | None = Query(default=None, alias="date"),
    store: OutputStore = Depends(get_output_store),
):
    """Download every image saved on a day as a zip."""
    content = store.archive(day)
    name = day or date.today().isoformat()
    return Response(
        content=content,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="rug-images-{name}.zip"'},
    )


@router.post("/images/generate")
def generate_images(
    request: GenerateRequest,
    generator: DirectImageGenerator = Depends(get_image_generator),
):
    results = generator.generate(request.prompts)
    return {
        "results": [r.model_dump() for r in results],
        "succeeded": sum(1 for r in results if r.success),
        "total": len(results),
    }
