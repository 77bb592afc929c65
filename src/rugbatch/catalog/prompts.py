"""Scene prompt templates for rug product images."""

import re

from rugbatch.models.rug import RugRecord

NEGATIVE_PROMPT = (
    "low quality, overexposed, watermark, extra rugs, distorted perspective, cartoon, text, logo"
)

DECOR_STYLE_BY_COLLECTION = {
    "Antique": "Traditional Decor",
    "Clearance": "Modern Decor",
    "Fine Oriental": "Traditional Decor",
    "Flat Weave": "Eclectic Decor",
    "Hand-Loomed": "Modern Decor",
    "Heriz": "Traditional Decor",
    "Kazak": "Transitional Decor",
    "Khotan and Samarkand": "Traditional Decor",
    "Mamluk": "Transitional Decor",
    "Modern & Contemporary": "Modern Decor",
    "Oushak and Peshawar": "Transitional Decor",
    "Persian": "Traditional Decor",
    "Program Rugs": "Transitional Decor",
    "Rajasthan": "Traditional Decor",
    "Silk": "Modern Decor",
    "Transitional": "Transitional Decor",
    "Tribal & Geometric": "Transitional Decor",
    "Vintage": "Transitional Decor",
    "White Wash Vintage & Silver Wash": "Modern Decor",
    "Wool And Silk": "Transitional Decor",
}

AMBIENTE_BY_SHAPE = {
    "runner": "hallway",
    "rectangle": "living room, parlor or library",
    "round": "living room with a curved couch or a dining room with a round table",
    "square": "square dining room or a balanced living room",
}

_KNOWN_SHAPES = {"runner": "Runner", "rectangle": "Rectangle", "round": "Round", "square": "Square"}

_SIZE_PATTERN = re.compile(r"(\d+)['\s\"]*(?:\d+)?['\s\"]*\s*[xX×]\s*(\d+)")

PROPORTION_INSTRUCTIONS = (
    "Preserve the rug's real physical proportions exactly as shown in the product image. "
    "Maintain the correct length-to-width ratio with no distortion, stretching, compression, "
    "or reshaping. Render the rug in the scene at a realistic scale relative to the room and "
    "surrounding objects. Ensure the geometry, outline, and aspect ratio match the original "
    "product image precisely, keeping the true shape whether it is rectangular, round, square, "
    "or runner. Do not modify the proportions or crop any part of the rug. Retain the full "
    "original dimensions so the rug appears naturally sized and consistent with its actual "
    "measurements."
)

RENDER_EXTRAS = (
    "Hardwood floor, soft shadows, realistic perspective from eye level (~1.2m), "
    "35mm lens, high detail."
)

SCENE_SUFFIX = (
    "Ensure seamless integration and harmonious blending of the rug within the scene so it "
    "appears naturally part of the environment, not artificially placed or pasted on. Avoid "
    "low quality, overexposed, watermarks, extra rugs, distorted perspective, cartoon style, "
    "text, logos, blurry elements, or graininess.\n\n"
    "Using the rug image provided above, generate a photorealistic interior scene image that "
    "matches these exact requirements. The generated image must show the EXACT rug from the "
    "provided image placed in the scene as described."
)


def get_decor_style(primary_category: str) -> str:
    """Map a collection name to a decor style."""
    category = (primary_category or "").strip()
    if not category:
        return "neutral decor"
    return DECOR_STYLE_BY_COLLECTION.get(category, "neutral decor")


def normalize_shape(shape: str) -> str:
    """Canonical shape name; anything unrecognized is a rectangle."""
    return _KNOWN_SHAPES.get((shape or "").strip().lower(), "Rectangle")


def get_ambiente(shape: str) -> str:
    return AMBIENTE_BY_SHAPE.get((shape or "").lower(), "living room")


def is_large_rug(size_text: str) -> bool:
    """True when either side is at least 9 ft or the area is at least 64 sq ft."""
    match = _SIZE_PATTERN.search(size_text or "")
    if not match:
        return False
    width, length = int(match.group(1)), int(match.group(2))
    return width >= 9 or length >= 9 or width * length >= 64


def _placement(rug: RugRecord, size_text: str) -> tuple[str, str]:
    shape = rug.shape.lower() if rug.shape else "rectangle"
    if shape == "runner":
        return (
            "elegant hallway",
            f"Place a runner rug ({size_text}) centered lengthwise along the hallway floor. "
            "No furniture on top of the rug. The runner should extend along the corridor "
            "with clear space on both sides.",
        )
    if shape == "round":
        return (
            "dining room with a round table",
            f"Place a round area rug ({size_text}) centered under a round dining table. "
            "The rug should extend beyond the table edges to accommodate chairs.",
        )
    if shape == "square":
        return (
            "square dining room",
            f"Place a square area rug ({size_text}) centered under a dining table. The rug "
            "should be proportional to the room with balanced spacing on all sides.",
        )
    if is_large_rug(size_text):
        return (
            "spacious parlor or library",
            f"Place a large rectangular area rug ({size_text}) as the room's centerpiece. "
            "Position elegant seating around the rug's perimeter. No furniture directly on "
            "top of the rug center.",
        )
    return (
        "cozy living room",
        f"Place a {shape} area rug ({size_text}) centered under a coffee table, with a sofa "
        "and armchairs arranged around it.",
    )


def build_prompt(rug: RugRecord) -> str:
    """Build the scene description for one rug."""
    colors = [
        rug.field_color,
        rug.border_color,
        rug.exact_field_color,
        rug.color,
        ", ".join(c for c in rug.other_colors if c),
    ]
    dominant = ", ".join(c for c in colors if c) or "neutral"
    size_text = rug.exact_size or rug.size or "area rug"
    use = f"{rug.rug_type.lower()} rug" if rug.rug_type else "indoor rug"
    decor = rug.decor_style or "neutral decor"
    ambiente, placement = _placement(rug, size_text)

    parts = [
        f"Photo-realistic {ambiente} in {decor}, featuring an {use}, with natural daylight.",
        placement,
        f"Rug collection: {rug.primary_category or 'unspecified'}; "
        f"secondary: {rug.secondary_category or 'none'}; "
        f"style: {rug.style or 'traditional'}; origin: {rug.origin or 'unknown'}.",
        f"Pile: {rug.pile or 'wool'}; foundation: {rug.foundation or 'cotton'}; "
        f"material: {rug.material or 'wool'}; weave type: {rug.weave_type or 'hand-knotted'}; "
        f"dominant colors: {dominant}.",
        PROPORTION_INSTRUCTIONS,
        RENDER_EXTRAS,
    ]
    return " ".join(parts)


def scene_instructions(prompt: str) -> str:
    """Text part sent alongside the source image in a batch request."""
    return f"{prompt} {SCENE_SUFFIX}"
