#!/usr/bin/env python3
"""Run live image-generation checks against each configured provider."""

from __future__ import annotations

import argparse
import sys
import textwrap
from pathlib import Path
from typing import Dict, Iterable

from comicgen.config import PROVIDER_PRECEDENCE, CredentialResolver
from comicgen.services.image_gen import build_client

PROVIDER_ENV_NAMES = (
    "DASHSCOPE_API_KEY",
    "DASHSCOPE_IMAGE_MODEL",
    "GOOGLE_API_KEY",
    "GEMINI_API_KEY",
    "GOOGLE_BASE_URL",
    "GOOGLE_IMAGE_MODEL",
    "OPENAI_API_KEY",
    "OPENAI_BASE_URL",
    "OPENAI_IMAGE_MODEL",
    "JIMENG_API_KEY",
    "JIMENG_API_SECRET",
    "JIMENG_API_URL",
)


def run_provider_test(
    provider: str,
    resolver: CredentialResolver,
    output_dir: Path,
    prompt: str,
    aspect_ratio: str,
    quality: str,
) -> Path:
    client = build_client(provider, resolver)
    output_dir.mkdir(parents=True, exist_ok=True)
    return client.generate(prompt, output_dir / f"{provider}.png", aspect_ratio, quality)


def parse_args(argv: Iterable[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description=textwrap.dedent(
            """\
            Smoke-test connectivity for DashScope, Google, OpenAI and Jimeng image generation.
            Keys are read from the environment and .env files unless given as arguments;
            providers without a key are skipped.
            """
        ),
    )
    parser.add_argument(
        "--prompt",
        default="A cheerful robot waving hello, clean line art comic panel.",
        help="Prompt sent to every provider.",
    )
    parser.add_argument("--aspect-ratio", default="1:1")
    parser.add_argument("--quality", default="normal", choices=["normal", "2k"])
    parser.add_argument("--output-dir", default="live_check_output", help="Directory for generated images.")
    parser.add_argument("--only", choices=list(PROVIDER_PRECEDENCE), help="Check a single provider.")

    parser.add_argument("--dashscope-key", help="DashScope API key.")
    parser.add_argument("--google-key", help="Google / Gemini API key.")
    parser.add_argument("--google-url", help="Optional Gemini API base URL.")
    parser.add_argument("--openai-key", help="OpenAI API key.")
    parser.add_argument("--openai-url", help="Optional OpenAI-compatible base URL.")
    parser.add_argument("--jimeng-key", help="Jimeng API key (AK or AK:SK).")
    parser.add_argument("--jimeng-secret", help="Jimeng API secret when --jimeng-key is not AK:SK.")

    return parser.parse_args(list(argv))


def _overrides(args: argparse.Namespace) -> Dict[str, str]:
    pairs = {
        "DASHSCOPE_API_KEY": args.dashscope_key,
        "GOOGLE_API_KEY": args.google_key,
        "GOOGLE_BASE_URL": args.google_url,
        "OPENAI_API_KEY": args.openai_key,
        "OPENAI_BASE_URL": args.openai_url,
        "JIMENG_API_KEY": args.jimeng_key,
        "JIMENG_API_SECRET": args.jimeng_secret,
    }
    return {key: value for key, value in pairs.items() if value}


def main(argv: Iterable[str]) -> int:
    args = parse_args(argv)
    base = CredentialResolver()
    environ = {name: base.get(name) or "" for name in PROVIDER_ENV_NAMES}
    environ.update(_overrides(args))
    resolver = CredentialResolver(env_files=[], environ=environ)

    providers = [args.only] if args.only else list(PROVIDER_PRECEDENCE)
    results: list[tuple[str, bool, str]] = []
    for provider in providers:
        if not resolver.has_credentials(provider):
            results.append((provider, False, "Skipped (no key configured)"))
            continue
        try:
            path = run_provider_test(
                provider,
                resolver,
                Path(args.output_dir),
                args.prompt,
                args.aspect_ratio,
                args.quality,
            )
            results.append((provider, True, f"Wrote {path}"))
        except Exception as exc:  # noqa: BLE001 - surface connectivity failures
            results.append((provider, False, repr(exc)))

    any_failure = False
    for name, ok, detail in results:
        status = "SUCCESS" if ok else "FAIL"
        print(f"[{name}] {status}: {detail}")
        if not ok and "Skipped" not in detail:
            any_failure = True

    return 0 if not any_failure else 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
