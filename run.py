"""Command-line entry point for the comic generator."""

from __future__ import annotations

import argparse
import logging
import sys

from comicgen.config import KNOWN_PROVIDERS
from comicgen.core.controller import clamp_concurrency
from comicgen.errors import ComicGenError, ConfigError
from comicgen.pipeline import ComicGenerator
from comicgen.project import ArtStyle, Tone

EXIT_CONFIG_ERROR = 1
EXIT_GENERATION_FAILED = 2


def _add_config_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-c", "--config", required=True, help="Path to the project JSON file.")


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(description="Generate comics from a declarative project file.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress details at INFO level.")
    sub = parser.add_subparsers(dest="command", required=True)

    init = sub.add_parser("init", help="Scaffold a new project directory.")
    init.add_argument("name", help="Project directory to create.")
    init.add_argument("--title", help="Comic title, defaults to the directory name.")
    init.add_argument("--author")
    init.add_argument("--art-style", default=ArtStyle.MANGA.value, choices=[s.value for s in ArtStyle])
    init.add_argument("--tone", default=Tone.NEUTRAL.value, choices=[t.value for t in Tone])
    init.add_argument("--aspect-ratio", default="3:4")
    init.add_argument("--pages", type=int, default=1, help="Number of empty pages to create.")

    generate = sub.add_parser("generate", help="Generate references, panels and pages.")
    _add_config_arg(generate)
    generate.add_argument("-o", "--output", help="Output root, defaults to the config file's directory.")
    generate.add_argument("--pages", help="Page selection such as 1-3 or 1,3,5.")
    generate.add_argument(
        "--panels",
        action="append",
        help="Panel selection such as page1:1-3. May be repeated.",
    )
    generate.add_argument("--parallel", action="store_true", help="Render panels in concurrent batches.")
    generate.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Batch size for --parallel, clamped to [1, 8].",
    )
    generate.add_argument("--provider", choices=list(KNOWN_PROVIDERS), help="Force an image provider.")
    generate.add_argument("--skip-refs", action="store_true", help="Skip character reference sheets.")
    generate.add_argument("--skip-composite", action="store_true", help="Skip page composition.")
    generate.add_argument("--pdf", action="store_true", help="Merge the composed pages into <title>.pdf after generation.")
    generate.add_argument(
        "--strict",
        action="store_true",
        help="Exit with status 2 when any panel fails.",
    )
    generate.add_argument("-v", "--verbose", action="store_true", dest="verbose_sub", help=argparse.SUPPRESS)

    preview = sub.add_parser("preview", help="Print the layout of a project.")
    _add_config_arg(preview)

    composite = sub.add_parser("composite", help="Compose pages from existing panels.")
    _add_config_arg(composite)
    composite.add_argument("-o", "--output", help="Output root, defaults to the config file's directory.")
    composite.add_argument("--pages", help="Page selection such as 1-3 or 1,3,5.")

    pdf = sub.add_parser("pdf", help="Merge composed pages into a PDF.")
    _add_config_arg(pdf)
    pdf.add_argument("-o", "--output", help="Output root, defaults to the config file's directory.")

    return parser.parse_args(argv)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _run(args: argparse.Namespace) -> int:
    generator = ComicGenerator()

    if args.command == "init":
        path = generator.init_project(
            args.name,
            title=args.title,
            author=args.author,
            art_style=args.art_style,
            tone=args.tone,
            aspect_ratio=args.aspect_ratio,
            page_count=args.pages,
        )
        print(f"Project created: {path}")
        print(f"Next: python run.py generate -c {path}")
        return 0

    if args.command == "preview":
        print(generator.preview(args.config))
        return 0

    if args.command == "composite":
        generator.composite(args.config, output_dir=args.output, pages=args.pages)
        return 0

    if args.command == "pdf":
        generator.export_pdf(args.config, output_dir=args.output)
        return 0

    concurrency = clamp_concurrency(args.concurrency) if args.concurrency is not None else None
    state = generator.generate(
        args.config,
        output_dir=args.output,
        pages=args.pages,
        panels=args.panels,
        parallel=args.parallel,
        concurrency=concurrency,
        provider=args.provider,
        skip_refs=args.skip_refs,
        skip_composite=args.skip_composite,
        pdf=args.pdf,
    )
    print("\nGeneration completed.")
    print(f"Output: {state.output_root}")
    if state.report is not None and state.report.has_failures:
        failed = ", ".join(outcome.panel_id for outcome in state.report.failed)
        print(f"Failed panels: {failed}")
        if args.strict:
            return EXIT_GENERATION_FAILED
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point used by ``python run.py`` and the ``comicgen`` script."""
    args = parse_args(sys.argv[1:] if argv is None else argv)
    _configure_logging(args.verbose or getattr(args, "verbose_sub", False))
    try:
        return _run(args)
    except ConfigError as exc:
        for message in exc.messages:
            print(f"Error: {message}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except ComicGenError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
