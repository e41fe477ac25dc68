"""Tests for page/panel selectors and job enumeration."""

from __future__ import annotations

import unittest

from comicgen.core.selection import (
    enumerate_jobs,
    pages_to_compose,
    parse_page_range,
    parse_panel_selector,
    resolve_selection,
)
from comicgen.errors import SelectionError
from comicgen.project import parse_project

from factories import project_data


class PageRangeTest(unittest.TestCase):
    def test_three_page_selection_keeps_page_order(self) -> None:
        data = project_data()
        third = {
            "id": "page3",
            "layout": {"type": "splash", "panels": [{"id": "t1", "position": {"row": 0, "col": 0}, "prompt": "End"}]},
        }
        data["pages"].append(third)
        project = parse_project(data)
        pages, panel_ids = resolve_selection(project, "3,1")
        jobs = enumerate_jobs(project, pages, panel_ids)
        self.assertEqual(sorted({job.page_index for job in jobs}), [1, 3])
        self.assertEqual([job.panel.id for job in jobs], ["p1", "p2", "p3", "t1"])

    def test_lists_and_ranges(self) -> None:
        self.assertEqual(parse_page_range("1,3", 5), [1, 3])
        self.assertEqual(parse_page_range("2-4", 5), [2, 3, 4])
        self.assertEqual(parse_page_range("5, 1-2", 5), [1, 2, 5])

    def test_duplicates_and_order_are_normalised(self) -> None:
        self.assertEqual(parse_page_range("3,1,3,1-2", 5), [1, 2, 3])

    def test_out_of_range_numbers_are_dropped(self) -> None:
        self.assertEqual(parse_page_range("1-10", 3), [1, 2, 3])
        self.assertEqual(parse_page_range("0,7", 3), [])

    def test_reversed_range_selects_nothing(self) -> None:
        self.assertEqual(parse_page_range("3-1", 5), [])
        self.assertEqual(parse_page_range("3-1,5", 5), [5])

    def test_malformed_input_is_rejected(self) -> None:
        for spec in ("a", "1,,2", "1-b", ""):
            with self.subTest(spec=spec):
                with self.assertRaises(SelectionError):
                    parse_page_range(spec, 5)


class PanelSelectorTest(unittest.TestCase):
    def setUp(self) -> None:
        self.project = parse_project(project_data())

    def test_selects_by_declared_position(self) -> None:
        self.assertEqual(parse_panel_selector("page1:1-2", self.project.pages), ["p1", "p2"])
        self.assertEqual(parse_panel_selector("page1:3,1", self.project.pages), ["p3", "p1"])

    def test_unknown_page_selects_nothing(self) -> None:
        self.assertEqual(parse_panel_selector("page9:1", self.project.pages), [])

    def test_reversed_panel_range_selects_nothing(self) -> None:
        self.assertEqual(parse_panel_selector("page1:3-1", self.project.pages), [])

    def test_missing_separator_is_rejected(self) -> None:
        with self.assertRaises(SelectionError) as ctx:
            parse_panel_selector("page1", self.project.pages)
        self.assertIn("pageId:range", str(ctx.exception))


class JobEnumerationTest(unittest.TestCase):
    def setUp(self) -> None:
        self.project = parse_project(project_data())

    def test_all_jobs_in_page_then_panel_order(self) -> None:
        jobs = enumerate_jobs(self.project)
        self.assertEqual([job.panel.id for job in jobs], ["p1", "p2", "p3", "s1"])
        self.assertEqual([job.sort_key for job in jobs], [(1, 0), (1, 1), (1, 2), (2, 0)])

    def test_page_and_panel_filters_intersect(self) -> None:
        pages, panel_ids = resolve_selection(self.project, "1", ["page1:2-3", "page2:1"])
        self.assertEqual(pages, [1])
        jobs = enumerate_jobs(self.project, pages, panel_ids)
        self.assertEqual([job.panel.id for job in jobs], ["p2", "p3"])

    def test_pages_to_compose_follows_panel_selection(self) -> None:
        self.assertEqual(pages_to_compose(self.project, [1, 2], {"s1"}), [2])
        self.assertEqual(pages_to_compose(self.project, [2, 1]), [1, 2])


if __name__ == "__main__":
    unittest.main()
