"""Prompt compilation for profile picture generation.

Two prompt strategies are supported, each a pure function from request
fields to prompt text:

- :func:`build_avatar_prompt` - stylized cartoon avatar wearing a trucker
  hat with a custom inscription (structured fields).
- :func:`build_traits_prompt` - chibi sketch character built from a list
  of NFT-style ``{trait_type, value}`` traits.

The generation core never inspects prompt content; adding a new style
means adding a new function here.

Usage
-----
::

    prompt = build_avatar_prompt(
        inscription="GM",
        hat_color="red",
        gender="female",
        description="loves skateboarding",
    )
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping

# ---------------------------------------------------------------------------
# Trucker-hat avatar sections.
# ---------------------------------------------------------------------------

_AVATAR_STYLE = (
    "Art Style: Stylized cartoon avatar with vibrant colors, bold outlines, and exaggerated "
    "features typical of high-quality cartoon PFPs (modern NFT avatars or anime-inspired "
    "characters). Distinctly animated, non-human appearance with clean lines, simplified "
    "textures and a whimsical vibe. Each avatar should have unique characteristics."
)

_AVATAR_GENDER_GUIDE = (
    "Gender Representation:\n"
    '- "female": softer facial features (larger eyes with longer lashes, rounded jawline), '
    "delicate styling (bows, frilled edges), brighter or pastel palettes.\n"
    '- "male": sharper facial features (angular jawline, thicker eyebrows), rugged styling '
    "(short hair, bolder patterns), darker or neutral palettes.\n"
    '- "neutral": balanced features, unisex clothing, a versatile palette without strong '
    "gender stereotypes."
)

_AVATAR_VARIETY = (
    "Randomize the expression (shy, cheerful or mischievous), eye color, hair style and color, "
    "skin tone, clothing and one accessory so every generation looks different, while keeping "
    "each choice consistent with the specified gender."
)

_AVATAR_BACKGROUND = (
    "Background: Solid black backdrop with minimal digital glitch effects and faint, floating "
    "pixel particles in soft sky-blue (#5CEFFF) tones. Keep it understated so the avatar stays "
    "the focal point."
)

_AVATAR_REQUIREMENTS = (
    "Critical Requirements:\n"
    "- Stylized cartoon only; no photorealistic skin textures or lifelike proportions.\n"
    "- Exclude any additional logos, characters, or text beyond the specified inscription.\n"
    "- Prioritize the avatar's face and hat in the composition."
)

# ---------------------------------------------------------------------------
# Trait-driven sketch character sections.
# ---------------------------------------------------------------------------

_TRAITS_INTRO = (
    "You are an AI art generator specializing in digital characters in the style of Milady and "
    "Remilio NFTs: chibi characters with a blocky, low-poly, hand-drawn sketch aesthetic, large "
    "expressive anime-like eyes, simple facial features and a prominent retro glitch effect. "
    "Avoid smooth 3D renders or polished cartoon looks. Generate a character from the JSON "
    "traits below, representing every trait accurately."
)

_TRAITS_RULES = (
    "Interpret the traits as follows: Background sets the scene; Race/Skin sets the skin tone; "
    "Hat, Glasses, Necklace, Shirt, Earring, Weapon and Costume add the named items; Face, Eyes, "
    "Eye color, Hair, Eyebrows and Mouth shape the face; Neck and Face Decoration add tattoos or "
    "marks; Core sets the overall vibe; Drip Score and Drip Grade raise the coolness factor. "
    "Render everything with rough sketch lines, vibrant contrasting colors and a pixelated "
    "glitch texture."
)

_TRAITS_OUTPUT = (
    "Output: a single digital image of the character with all traits applied in the "
    "Milady/Remilio sketch style. Do not describe the image in text; only produce the visual "
    "output."
)

_HAT_TRAIT_TYPES = ("hat", "Hat")


def build_avatar_prompt(
    inscription: str,
    hat_color: str,
    gender: str,
    description: str = "",
    *,
    custom_color: str | None = None,
) -> str:
    """Compile the trucker-hat avatar prompt.

    Args:
        inscription: Text printed on the hat's front panel.
        hat_color: Hat color name.
        gender: ``"female"``, ``"male"`` or ``"neutral"``.
        description: Free-text personalisation.
        custom_color: Optional color that overrides ``hat_color``.

    Returns:
        The compiled prompt, sections separated by blank lines.
    """
    color = (custom_color or "").strip() or hat_color.strip()
    inscription = inscription.strip()

    parts = [
        "Stylized Cartoon Avatar Featuring a Trucker Hat with a Custom Inscription",
        (
            "Generate a high-quality, digitally aesthetic profile picture of a stylized cartoon "
            f'avatar wearing a trucker hat that prominently displays the inscription "{inscription}". '
            f'The avatar must clearly reflect the gender "{gender}".'
        ),
        (
            f'- Hat Inscription: "{inscription}"\n'
            f"- Hat Color: {color}\n"
            f"- Gender: {gender}\n"
            f"- Description: {description.strip()}"
        ),
        _AVATAR_STYLE,
        _AVATAR_GENDER_GUIDE,
        _AVATAR_VARIETY,
        (
            f"Hat: Trucker-style cap in {color} with a mesh back and a prominent front panel. "
            f'The inscription "{inscription}" must appear in its entirety in a bold, legible, '
            "black font, without truncation or distortion."
        ),
        _AVATAR_BACKGROUND,
        _AVATAR_REQUIREMENTS,
    ]
    return "\n\n".join(parts)


def build_traits_prompt(traits: Iterable[Mapping[str, object]]) -> str:
    """Compile the trait-driven sketch character prompt.

    Args:
        traits: ``{"trait_type": ..., "value": ...}`` mappings.

    Returns:
        The compiled prompt with the traits embedded as indented JSON.
    """
    traits_json = json.dumps([dict(t) for t in traits], indent=2, ensure_ascii=False)
    return "\n\n".join(
        [
            _TRAITS_INTRO,
            _TRAITS_RULES,
            f"JSON Traits Input:\n{traits_json}",
            _TRAITS_OUTPUT,
        ]
    )


def resolve_inscription(traits: Iterable[Mapping[str, object]], default: str = "Custom") -> str:
    """Gallery label for a trait list: the hat trait value, else *default*."""
    for trait in traits:
        if trait.get("trait_type") in _HAT_TRAIT_TYPES and trait.get("value"):
            return str(trait["value"])
    return default
