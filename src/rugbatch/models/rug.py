"""Catalog item models."""

from pydantic import BaseModel, ConfigDict, Field


class RugRecord(BaseModel):
    """One rug as read from the catalog CSV."""

    model_config = ConfigDict(frozen=True)

    sku: str = ""
    title: str = ""
    description: str = ""
    primary_category: str = ""
    secondary_category: str = ""
    pile: str = ""
    foundation: str = ""
    border_color: str = ""
    field_color: str = ""
    exact_field_color: str = ""
    other_colors: tuple[str, ...] = Field(default_factory=tuple)
    weight: str = ""
    style: str = ""
    material: str = ""
    weave_type: str = ""
    rug_type: str = ""
    origin: str = ""
    image_link: str = ""
    color: str = ""
    exact_size: str = ""
    size: str = ""
    total_sq_ft: str = ""
    stock_shape: str = ""
    shape: str = "Rectangle"
    ambiente: str = ""
    decor_style: str = ""


class ProcessedRug(RugRecord):
    """A rug with its scene prompt, ready to be batched."""

    prompt: str = Field(..., min_length=1)
    position: int = Field(default=0, ge=0, description="Row position in the source catalog")

    @property
    def request_key(self) -> str:
        """Key used to match batch results back to this rug."""
        sku = self.sku.strip()
        if sku:
            return f"rug-{sku}"
        return f"rug-idx-{self.position}"
