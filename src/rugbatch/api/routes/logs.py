"""Event log endpoints."""

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from rugbatch.api.dependencies import get_event_log
from rugbatch.eventlog import EventLog, LogLevel
from rugbatch.models.errors import ValidationError

router = APIRouter(prefix="/api/v1", tags=["logs"])


def _parse_level(level: str | None) -> LogLevel | None:
    if level is None:
        return None
    try:
        return LogLevel[level.upper()]
    except KeyError:
        raise ValidationError(
            f"Unknown log level: {level}",
            details={"allowed": [lvl.name for lvl in LogLevel]},
        )


@router.get("/logs")
async def get_logs(
    category: str | None = None,
    level: str | None = None,
    chunk_index: int | None = Query(default=None, ge=0),
    limit: int = Query(default=200, gt=0, le=1000),
    events: EventLog = Depends(get_event_log),
):
    """Most recent events matching the filters, oldest first."""
    entries = events.entries(
        category=category, level=_parse_level(level), chunk_index=chunk_index
    )
    return {
        "total": len(entries),
        "entries": [e.model_dump(mode="json") for e in entries[-limit:]],
    }


@router.get("/logs/export")
async def export_logs(events: EventLog = Depends(get_event_log)):
    return Response(
        content=events.export_json(),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="rugbatch-logs.json"'},
    )


@router.delete("/logs")
async def clear_logs(events: EventLog = Depends(get_event_log)):
    events.clear()
    return {"status": "cleared"}
