"""Catalog CSV parsing and row mapping."""

import csv
import io
import logging
import re

from rugbatch.catalog.prompts import build_prompt, get_ambiente, get_decor_style, normalize_shape
from rugbatch.models.errors import ValidationError
from rugbatch.models.rug import ProcessedRug, RugRecord

logger = logging.getLogger(__name__)

# Field name -> accepted column headers, first non-empty wins.
COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "sku": ("SKU",),
    "title": ("Title",),
    "description": ("Description",),
    "primary_category": ("Primary Category",),
    "secondary_category": ("Secondary Category",),
    "pile": ("Pile", "Rug Pile"),
    "foundation": ("Foundation", "Rug Foundation"),
    "border_color": ("borderColor", "Rug Border Color"),
    "field_color": ("fieldColor", "Rug Field Color"),
    "exact_field_color": ("Exact Field Color",),
    "weight": ("Weight",),
    "style": ("Style",),
    "material": ("Material",),
    "weave_type": ("Weavetype",),
    "rug_type": ("Rugtype",),
    "origin": ("Origin",),
    "image_link": ("image link", "image_link"),
    "color": ("color",),
    "exact_size": ("exactSize", "Exact Size"),
    "size": ("size",),
    "total_sq_ft": ("total Sq Ft", "total_sq_ft"),
    "stock_shape": ("Stock Shape",),
}

OTHER_COLOR_COLUMNS = ("otherColors", "Other Color")


def _first(row: dict[str, str], headers: tuple[str, ...]) -> str:
    for header in headers:
        value = row.get(header)
        if value:
            return value.strip()
    return ""


def read_rows(data: bytes | str) -> list[dict[str, str]]:
    """Parse CSV content into header-keyed rows."""
    if isinstance(data, bytes):
        try:
            text = data.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ValidationError("CSV file must be UTF-8 encoded") from e
    else:
        text = data.lstrip("\ufeff")
    reader = csv.DictReader(io.StringIO(text))
    return [{k: (v or "") for k, v in row.items() if k is not None} for row in reader]


def map_row(row: dict[str, str]) -> RugRecord:
    """Map a CSV row (either header variant) to a RugRecord."""
    fields = {name: _first(row, headers) for name, headers in COLUMN_ALIASES.items()}
    other_raw = _first(row, OTHER_COLOR_COLUMNS)
    other_colors = tuple(c.strip() for c in re.split(r"[;,]", other_raw) if c.strip())
    shape = normalize_shape(fields["stock_shape"])
    return RugRecord(
        **fields,
        other_colors=other_colors,
        shape=shape,
        ambiente=get_ambiente(shape),
        decor_style=get_decor_style(fields["primary_category"]),
    )


def process_rows(rows: list[dict[str, str]]) -> list[ProcessedRug]:
    """Build prompt-carrying rugs from parsed rows, keeping row order."""
    rugs = []
    for position, row in enumerate(rows):
        record = map_row(row)
        rugs.append(
            ProcessedRug(**record.model_dump(), prompt=build_prompt(record), position=position)
        )
    return rugs


def load_rugs(data: bytes | str) -> list[ProcessedRug]:
    """Parse a catalog CSV into processed rugs."""
    rows = read_rows(data)
    if not rows:
        raise ValidationError("CSV file is empty")
    rugs = process_rows(rows)
    logger.info(f"Loaded {len(rugs)} rugs from catalog")
    return rugs


def chunk_csv(rows: list[dict[str, str]], chunk_size: int, chunk_index: int) -> str:
    """Render one chunk of the source rows back to CSV text."""
    if chunk_size <= 0:
        raise ValidationError("chunk_size must be positive")
    total_chunks = -(-len(rows) // chunk_size)
    if not 0 <= chunk_index < total_chunks:
        raise ValidationError(
            f"Chunk index {chunk_index} out of range",
            details={"total_chunks": total_chunks},
        )
    selected = rows[chunk_index * chunk_size : (chunk_index + 1) * chunk_size]
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=list(rows[0].keys()))
    writer.writeheader()
    writer.writerows(selected)
    return buffer.getvalue()
