"""Hypothesis strategies for property-based testing."""

from hypothesis import strategies as st

from rugbatch.models.rug import ProcessedRug


@st.composite
def generate_rugs(draw, min_size=1, max_size=60):
    """Generate an ordered catalog with unique SKUs."""
    count = draw(st.integers(min_value=min_size, max_value=max_size))
    return [
        ProcessedRug(sku=f"SKU-{i}", prompt=f"Scene {i}", position=i) for i in range(count)
    ]


@st.composite
def generate_pipeline_params(draw):
    """Generate (rugs, chunk_size, concurrency_limit)."""
    rugs = draw(generate_rugs(max_size=40))
    chunk_size = draw(st.integers(min_value=1, max_value=15))
    concurrency_limit = draw(st.integers(min_value=1, max_value=6))
    return rugs, chunk_size, concurrency_limit
