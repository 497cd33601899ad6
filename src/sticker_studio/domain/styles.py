"""Sticker styles and prompt templating."""

from enum import StrEnum

from sticker_studio.domain.errors import ConfigurationError
from sticker_studio.domain.poses import PoseDescriptor


class StyleId(StrEnum):
    """Supported sticker art styles."""

    CARTOON = "cartoon"
    ANIME = "anime"
    WATERCOLOR = "watercolor"
    PIXEL = "pixel"
    MINIMALIST = "minimalist"
    REALISTIC = "realistic"
    PUSHEEN = "pusheen"


STYLE_TEMPLATES: dict[StyleId, str] = {
    StyleId.CARTOON: (
        "Transform this pet into a vibrant cartoon-style sticker {pose}. "
        "Create a kawaii-inspired design with bold, clean outlines, cel-shading, "
        "and bright saturated colors. The pet should have exaggerated cute "
        "features like larger eyes and a friendly expression. Use a white "
        "background suitable for messaging stickers."
    ),
    StyleId.ANIME: (
        "Transform this pet into an anime manga-style sticker {pose}. Use the "
        "characteristic anime art style with sharp lines, gradient shading, and "
        "expressive large eyes. Apply a soft color palette with cel-shading "
        "techniques. The pet should have an endearing anime character "
        "appearance on a white background."
    ),
    StyleId.WATERCOLOR: (
        "Transform this pet into a watercolor painting sticker {pose}. Apply "
        "soft, flowing watercolor brush strokes with gentle color bleeding "
        "effects. Use a dreamy pastel color palette with organic, flowing edges. "
        "Maintain the pet's features while giving it a hand-painted look."
    ),
    StyleId.PIXEL: (
        "Transform this pet into a retro pixel art sticker {pose}. Use 16-bit "
        "video game aesthetics with blocky, pixelated details and a limited "
        "color palette reminiscent of classic arcade games. The pet should look "
        "like a cute video game sprite with crisp pixel edges."
    ),
    StyleId.MINIMALIST: (
        "Transform this pet into a minimalist line art sticker {pose}. Use "
        "clean, simple geometric lines and shapes with minimal detail. Apply a "
        "monochromatic or limited color scheme focusing on essential features "
        "only. The design should be elegant and modern with plenty of white "
        "space."
    ),
    StyleId.REALISTIC: (
        "Enhance this pet photo to create a high-quality realistic sticker "
        "{pose}. Improve lighting, contrast, and colors while maintaining a "
        "photorealistic appearance. Ensure clean edges suitable for sticker "
        "format."
    ),
    StyleId.PUSHEEN: (
        "Transform this pet into an adorable Pusheen-style sticker {pose}. Make "
        "the pet round, chubby, and compact with a simplified kawaii design. "
        "Preserve the pet's original colors, markings, and distinctive features. "
        "Use small simple dot eyes, a minimal mouth, thick clean outlines, and "
        "very rounded proportions with tiny paws. Use a white background perfect "
        "for messaging apps."
    ),
}


def _check_templates() -> None:
    missing = [style.value for style in StyleId if style not in STYLE_TEMPLATES]
    if missing:
        raise ConfigurationError(f"Missing style templates: {', '.join(missing)}")
    for style, template in STYLE_TEMPLATES.items():
        if "{pose}" not in template:
            raise ConfigurationError(f"Template for {style} lacks a pose slot")


_check_templates()


def resolve_style(raw: str) -> StyleId:
    """Return the style for a raw id, raising ConfigurationError if unknown."""
    try:
        return StyleId(raw)
    except ValueError:
        valid = ", ".join(style.value for style in StyleId)
        raise ConfigurationError(
            f"Unknown style '{raw}'. Style must be one of: {valid}"
        ) from None


def build_prompt(style: StyleId, pose: PoseDescriptor) -> str:
    """Fill the style template with a pose fragment."""
    return STYLE_TEMPLATES[style].format(pose=pose.prompt_fragment)
