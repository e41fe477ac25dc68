"""Tests for panel prompt assembly and reference image lookup."""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from comicgen.project import parse_project
from comicgen.services.prompt_builder import (
    FOCUS_MODIFIERS,
    STYLE_DESCRIPTIONS,
    TONE_DESCRIPTIONS,
    PromptBuilder,
    character_description,
)

from factories import project_data


class PromptBuilderTest(unittest.TestCase):
    def setUp(self) -> None:
        self.project = parse_project(project_data())
        self.page = self.project.pages[0]
        self.builder = PromptBuilder()

    def test_prompt_contains_every_section_in_order(self) -> None:
        prompt = self.builder.build(self.project, self.page, self.page.layout.panels[0])
        sections = [
            STYLE_DESCRIPTIONS["manga"],
            TONE_DESCRIPTIONS["warm"],
            "soft pencil texture",
            "Aki runs across a rooftop",
            "a young courier",
            "happy expression",
            FOCUS_MODIFIERS["action"],
        ]
        positions = [prompt.index(section) for section in sections]
        self.assertEqual(positions, sorted(positions))

    def test_panel_without_characters_or_focus(self) -> None:
        prompt = self.builder.build(self.project, self.page, self.page.layout.panels[1])
        self.assertTrue(prompt.endswith("City skyline at dusk"))

    def test_character_description_includes_visual_spec(self) -> None:
        text = character_description(self.project.characters[0])
        self.assertEqual(text, "a young courier; age 16, short black hair, wearing red jacket")

    def test_reference_images_only_lists_existing_files(self) -> None:
        panel = self.page.layout.panels[0]
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            self.assertEqual(self.builder.reference_images(self.project, panel, root), [])

            char_dir = root / "characters" / "hero"
            char_dir.mkdir(parents=True)
            for name in ("fullbody.png", "expressions.png", "angles.png"):
                (char_dir / name).write_bytes(b"png")

            refs = self.builder.reference_images(self.project, panel, root)
            self.assertEqual(
                refs,
                [str(char_dir / "expressions.png"), str(char_dir / "fullbody.png")],
            )


if __name__ == "__main__":
    unittest.main()
