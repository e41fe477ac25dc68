"""Comic generator package.

Turns a declarative comic project (characters, pages, grid layouts and
panel prompts) into panel images, composed pages and a PDF through a
chain of pipeline nodes backed by pluggable image providers.
"""

from .pipeline import ComicGenerator  # noqa: F401

__all__ = ["ComicGenerator"]
