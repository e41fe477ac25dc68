"""Turns project style, panel text and character cross-references into prompts."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

from ..project import Character, Page, Panel, Project
from ..utils.prompts import join_prompt_parts

STYLE_DESCRIPTIONS: Dict[str, str] = {
    "manga": (
        "Japanese manga/anime style with expressive characters, large eyes, clean smooth lines, "
        "dynamic poses, screen tone effects"
    ),
    "ligne-claire": (
        "Clean line art style, European comic aesthetic, clear outlines, flat colors, minimal shading, "
        "detailed backgrounds"
    ),
    "realistic": "Realistic art style with accurate proportions, detailed rendering, natural lighting, lifelike textures",
    "ink-brush": (
        "Traditional ink brush painting style, calligraphic brush strokes, black and white ink, "
        "expressive line weight variation"
    ),
    "chalk": "Chalkboard texture style, educational aesthetic, hand-drawn chalk feel, soft edges, warm blackboard background",
}

TONE_DESCRIPTIONS: Dict[str, str] = {
    "neutral": "balanced tone, natural colors, even lighting",
    "warm": "warm golden lighting, nostalgic atmosphere, soft yellow-orange cast, comforting mood",
    "dramatic": "high contrast, deep shadows, intense lighting, bold colors, theatrical atmosphere",
    "romantic": "soft pastel colors, gentle lighting, dreamy atmosphere, pink and rose hues",
    "energetic": "vibrant saturated colors, dynamic energy, bright highlights, exciting mood",
    "vintage": "sepia-toned, aged paper aesthetic, muted colors, nostalgic old photograph feel",
    "action": "high energy, sharp contrasts, dynamic motion blur, intense drama",
}

FOCUS_MODIFIERS: Dict[str, str] = {
    "character": "focus on character, close-up shot",
    "environment": "detailed environment background",
    "action": "dynamic action pose, motion blur effect",
    "dialogue": "character speaking, speech bubble composition",
    "close-up": "extreme close-up, facial expression focus",
    "wide": "wide shot, establish setting",
}


def _value(item) -> str:
    return getattr(item, "value", item)


def character_description(character: Character) -> str:
    """Free-text description plus the visual spec, for prompts and reference sheets."""
    parts: List[str] = []
    if character.description:
        parts.append(character.description)
    spec = character.visual_spec
    if spec is not None:
        specs = [
            f"age {spec.age}" if spec.age else None,
            spec.hair,
            spec.eyes,
            f"wearing {spec.outfit}" if spec.outfit else None,
            spec.body_type,
            spec.distinctive_features,
        ]
        rendered = join_prompt_parts(specs)
        if rendered:
            parts.append(rendered)
    return "; ".join(parts)


class PromptBuilder:
    """Builds panel prompts and finds character reference images on disk."""

    def base_prompt(self, project: Project) -> str:
        style = project.style
        style_desc = STYLE_DESCRIPTIONS.get(_value(style.art_style), STYLE_DESCRIPTIONS["manga"])
        tone_desc = TONE_DESCRIPTIONS.get(_value(style.tone), TONE_DESCRIPTIONS["neutral"])
        return join_prompt_parts([style_desc, tone_desc, style.base_prompt])

    def build(self, project: Project, page: Page, panel: Panel) -> str:
        """Return the full prompt text for ``panel``."""
        parts: List[Optional[str]] = [self.base_prompt(project), panel.prompt]
        parts.append(self._character_prompts(project, panel))
        if panel.focus is not None:
            parts.append(FOCUS_MODIFIERS.get(_value(panel.focus), ""))
        return join_prompt_parts(parts)

    def _character_prompts(self, project: Project, panel: Panel) -> Optional[str]:
        rendered: List[str] = []
        for ref in panel.characters:
            character = project.character(ref.id)
            if character is None:
                continue
            char_parts = [
                character_description(character),
                f"{ref.expression} expression" if ref.expression else None,
                ref.action,
                f"{ref.angle} angle" if ref.angle else None,
            ]
            text = join_prompt_parts(char_parts)
            if text:
                rendered.append(text)
        return "; ".join(rendered) if rendered else None

    def reference_images(self, project: Project, panel: Panel, output_root: str | Path) -> List[str]:
        """Existing character reference sheets relevant to ``panel``, in a stable order."""
        root = Path(output_root)
        images: List[str] = []
        for ref in panel.characters:
            character = project.character(ref.id)
            if character is None:
                continue
            char_dir = root / "characters" / character.id
            candidates = []
            if ref.expression:
                candidates.append(char_dir / "expressions.png")
            if ref.angle:
                candidates.append(char_dir / "angles.png")
            candidates.append(char_dir / "fullbody.png")
            for candidate in candidates:
                path = str(candidate)
                if candidate.is_file() and path not in images:
                    images.append(path)
        return images
