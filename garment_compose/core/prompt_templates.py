"""Instruction templates and builders for the Gemini garment composition flow."""

from __future__ import annotations

from garment_compose.models import EditRequest, Fit, Placement, RenderStyle


# --- OVERLAY INSTRUCTIONS ---

BASE_INSTRUCTIONS = (
    "Create a realistic virtual try-on image by overlaying the garment onto the "
    "user photo. Ensure natural fitting, proper shadows, and realistic blending."
)

PLACEMENT_CLAUSES = {
    Placement.UPPER_BODY.value: (
        "Focus on upper body placement. Ensure proper alignment with "
        "shoulders, chest, and arms."
    ),
    Placement.LOWER_BODY.value: (
        "Focus on lower body placement. Ensure proper alignment with "
        "waist, hips, and legs."
    ),
    Placement.FULL_BODY.value: (
        "Place garment on appropriate body section with full-body visibility."
    ),
    Placement.ACCESSORY.value: (
        "Position accessory naturally on the user (hat on head, bag in "
        "hand, watch on wrist, etc.)."
    ),
}

FIT_CLAUSES = {
    Fit.SNUG.value: "Apply with close fit to body, showing natural contours.",
    Fit.REGULAR.value: "Apply with standard fit, neither too tight nor too loose.",
    Fit.LOOSE.value: "Apply with relaxed fit, showing natural draping and movement.",
}

STYLE_CLAUSES = {
    RenderStyle.REALISTIC.value: (
        "Create photorealistic result with accurate lighting, shadows, and textures."
    ),
    RenderStyle.STYLIZED.value: (
        "Apply artistic enhancement while maintaining recognizable features."
    ),
    RenderStyle.ENHANCED.value: (
        "Improve overall appearance with subtle enhancements to lighting and colors."
    ),
}


def build_overlay_instructions(
    placement: str = Placement.FULL_BODY.value,
    fit: str = Fit.REGULAR.value,
    render_style: str = RenderStyle.REALISTIC.value,
    custom_instructions: str | None = None,
) -> str:
    """Render the garment overlay directive. Output depends only on the inputs."""
    parts = [BASE_INSTRUCTIONS]

    for lookup, key in (
        (PLACEMENT_CLAUSES, placement),
        (FIT_CLAUSES, fit),
        (STYLE_CLAUSES, render_style),
    ):
        clause = lookup.get(key) if key else None
        if clause:
            parts.append(clause)

    if custom_instructions:
        parts.append(f"Additional requirements: {custom_instructions}")

    return " ".join(parts)


def build_instructions_for(request: EditRequest) -> str:
    """Compose the directive for an edit request, applying parameter defaults."""
    return build_overlay_instructions(
        placement=request.placement or Placement.FULL_BODY.value,
        fit=request.fit or Fit.REGULAR.value,
        render_style=request.render_style or RenderStyle.REALISTIC.value,
        custom_instructions=request.custom_instructions,
    )


__all__ = [
    "BASE_INSTRUCTIONS",
    "PLACEMENT_CLAUSES",
    "FIT_CLAUSES",
    "STYLE_CLAUSES",
    "build_overlay_instructions",
    "build_instructions_for",
]
