"""Character reference sheets: expressions, angles, full body and palette."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Tuple

from ..core.runner import DEFAULT_QUALITY, MAX_RETRIES, ImageGenerator, generate_with_retry
from ..project import Character
from ..services.prompt_builder import PromptBuilder, character_description
from ..types import CharacterReference, RunState
from ..utils.files import ensure_dir
from ..utils.prompts import join_prompt_parts, load_prompt
from .base import BaseNode

logger = logging.getLogger(__name__)

EXPRESSIONS: Tuple[str, ...] = (
    "neutral",
    "happy",
    "sad",
    "angry",
    "surprised",
    "worried",
    "thinking",
    "embarrassed",
    "excited",
)

ANGLES: Tuple[str, ...] = (
    "front view",
    "three-quarter view",
    "side profile view",
    "back view",
)

# (sheet name, prompt template, aspect ratio), in generation order.
REFERENCE_SHEETS: Tuple[Tuple[str, str, str], ...] = (
    ("expressions", "character_expressions", "1:1"),
    ("angles", "character_angles", "1:1"),
    ("fullbody", "character_fullbody", "3:4"),
    ("palette", "character_palette", "1:1"),
)


def character_dir(output_root: str | Path, character_id: str) -> Path:
    return Path(output_root) / "characters" / character_id


def reference_path(output_root: str | Path, character_id: str, sheet: str) -> Path:
    return character_dir(output_root, character_id) / f"{sheet}.png"


def expression_cells() -> str:
    return ", ".join(
        f"row {index // 3 + 1} col {index % 3 + 1}: {expression} expression"
        for index, expression in enumerate(EXPRESSIONS)
    )


def reference_prompt(template: str, character: Character, base_prompt: str) -> str:
    variables: Dict[str, object] = {
        "base_prompt": base_prompt,
        "name": character.name,
        "description": character_description(character),
        "expression_cells": expression_cells(),
    }
    for index, angle in enumerate(ANGLES, start=1):
        variables[f"angle_{index}"] = angle
    return join_prompt_parts(load_prompt(template, variables).splitlines())


class GenCharacterRefs(BaseNode):
    """Generates the four reference sheets for every declared character.

    Sheets already on disk are kept. A character whose sheets fail is
    reported with a warning and the run continues; panels then fall back
    to whatever references exist.
    """

    def __init__(
        self,
        run_id: str,
        logger,
        generator: ImageGenerator,
        prompt_builder: PromptBuilder | None = None,
        *,
        quality: str = DEFAULT_QUALITY,
        max_retries: int = MAX_RETRIES,
    ) -> None:
        super().__init__(name="GenCharacterRefs", run_id=run_id, logger=logger)
        self._generator = generator
        self._prompt_builder = prompt_builder or PromptBuilder()
        self._quality = quality
        self._max_retries = max_retries

    def run(self, state: RunState) -> RunState:
        """Populate ``state.character_refs`` keyed by character id."""
        project = state.project
        if not project.characters:
            return state

        print("\nGenerating character references...")
        base_prompt = self._prompt_builder.base_prompt(project)
        for character in project.characters:
            print(f"  Processing: {character.name} ({character.id})")
            state.character_refs[character.id] = self._generate_for(
                state, character, base_prompt
            )

        print(f"\n✓ Generated references for {len(state.character_refs)} character(s)")
        return state

    def _generate_for(self, state: RunState, character: Character, base_prompt: str) -> CharacterReference:
        ensure_dir(character_dir(state.output_root, character.id))
        reference = CharacterReference(character_id=character.id)
        created: List[str] = []
        try:
            for sheet, template, ratio in REFERENCE_SHEETS:
                target = reference_path(state.output_root, character.id, sheet)
                reference.images[sheet] = str(target)
                if target.exists():
                    continue
                prompt = reference_prompt(template, character, base_prompt)
                step = f"refs-{character.id}-{sheet}"
                self.log_prompt(prompt, step=step)
                generate_with_retry(
                    self._generator,
                    prompt=prompt,
                    output_path=target,
                    aspect_ratio=ratio,
                    quality=self._quality,
                    provider=state.provider,
                    max_retries=self._max_retries,
                    label=f"{character.id}/{sheet}",
                )
                self.log_response({"output_path": str(target), "aspect_ratio": ratio}, step=step)
                created.append(sheet)
                print(f"    ✓ Generated {sheet} reference")
            reference.generated = True
        except Exception as exc:  # noqa: BLE001 - a character's failure never aborts the run
            logger.warning("Failed to generate references for %s: %s", character.id, exc)
            reference.images = {
                sheet: path for sheet, path in reference.images.items() if Path(path).exists()
            }
        if reference.generated and not created:
            print("    ✓ References already present")
        return reference
