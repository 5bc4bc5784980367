"""
Which files the engine skips before parsing.

Two things keep a file out of a run: living under a vendored, generated or
tool-owned directory (``node_modules``, ``dist``, ``.git`` ...) and being a
declaration or minified file for its language (``.d.ts``, ``.min.js``).
The runner asks ``should_analyze_file`` for every collected path.
"""

import re
from functools import lru_cache
from typing import Dict, FrozenSet, List, Optional


EXCLUDED_DIRS: FrozenSet[str] = frozenset({
    # installed dependencies
    "node_modules", "bower_components", "jspm_packages", "vendor", "vendors",
    # build output
    "dist", "build", "out", "coverage",
    ".next", ".nuxt", ".svelte-kit", ".vercel", ".netlify",
    # vcs and tool caches
    ".git", ".hg", ".svn", ".cache", ".turbo",
})

# A whole path segment must match: "distro/" is kept, "dist/" is not
_EXCLUDED_SEGMENT = re.compile(
    r'/(?:%s)(?:/|$)' % '|'.join(map(re.escape, sorted(EXCLUDED_DIRS))),
    re.IGNORECASE,
)

EXCLUDED_EXTENSIONS_BY_LANG: Dict[str, FrozenSet[str]] = {
    "typescript": frozenset({".d.ts", ".d.mts", ".d.cts"}),
    "javascript": frozenset({".min.js"}),
}

_LANGUAGE_SUFFIXES = (
    ("typescript", (".ts", ".tsx", ".mts", ".cts")),
    ("javascript", (".js", ".jsx", ".mjs", ".cjs")),
)


@lru_cache(maxsize=2048)
def is_excluded_path(file_path: str) -> bool:
    """True when any directory on ``file_path`` is in ``EXCLUDED_DIRS``."""
    return _EXCLUDED_SEGMENT.search(file_path.replace('\\', '/')) is not None


def _language_of(file_path: str) -> Optional[str]:
    lowered = file_path.lower()
    return next((lang for lang, suffixes in _LANGUAGE_SUFFIXES if lowered.endswith(suffixes)), None)


def has_excluded_extension(file_path: str, language: Optional[str] = None) -> bool:
    """True for declaration/minified files of ``language`` (guessed from the name if omitted)."""
    suffixes = EXCLUDED_EXTENSIONS_BY_LANG.get(language or _language_of(file_path), frozenset())
    return file_path.lower().endswith(tuple(suffixes)) if suffixes else False


def should_analyze_file(file_path: str, language: Optional[str] = None) -> bool:
    return not (is_excluded_path(file_path) or has_excluded_extension(file_path, language))


def filter_files(files: List[str], language: Optional[str] = None) -> List[str]:
    return [path for path in files if should_analyze_file(path, language)]
