"""Import specifier scanning, resolution and rewriting."""

import logging
import posixpath
import re
from typing import Callable, Iterable, Optional

from sandpit.constants import COMPONENT_EXTENSIONS, SOURCE_EXTENSIONS, SOURCE_ROOT

logger = logging.getLogger(__name__)

# from '...', import '...', import('...'), require('...'), export ... from '...'
SPECIFIER_RE = re.compile(
    r"""(\bfrom\s*|\bimport\s*\(?\s*|\brequire\s*\(\s*)(['"])([^'"\n]+)\2"""
)

JSX_RE = re.compile(r"<[A-Za-z][\w.]*(?:\s[^<>]*)?/?>|<>")
REACT_IMPORT_RE = re.compile(r"\bimport\s+(?:React\b|\*\s+as\s+React\b)")
DEFAULT_EXPORT_RE = re.compile(r"\bexport\s+default\b|\bas\s+default\b")
DECLARATION_RE = re.compile(
    r"^\s*(?:export\s+)?(?:"
    r"function\s+([A-Za-z_$][\w$]*)"
    r"|(?:const|let|var)\s+([A-Za-z_$][\w$]*)\s*="
    r"|class\s+([A-Za-z_$][\w$]*)"
    r")",
    re.MULTILINE,
)


def find_specifiers(source: str) -> list[str]:
    """Return every module specifier in a source file, in order."""
    return [match.group(3) for match in SPECIFIER_RE.finditer(source)]


def is_local(specifier: str) -> bool:
    """Whether a specifier names a project file rather than a package."""
    return specifier.startswith((".", "/", "components/"))


def package_name(specifier: str) -> Optional[str]:
    """Top-level package of a bare specifier.

    ``@scope/pkg/sub`` gives ``@scope/pkg``; ``pkg/sub`` gives ``pkg``.
    Local specifiers give None.
    """
    if is_local(specifier) or not specifier.strip():
        return None
    parts = specifier.split("/")
    if specifier.startswith("@"):
        return "/".join(parts[:2]) if len(parts) > 1 else None
    return parts[0]


def detect_packages(files: dict[str, str], allowed: Iterable[str]) -> set[str]:
    """Collect allowed packages imported anywhere in the source files.

    Args:
        files: Canonical file map
        allowed: Package names the preview runtime supports

    Returns:
        Set of package names
    """
    allowed = set(allowed)
    found = set()
    for path, content in files.items():
        if not path.endswith(SOURCE_EXTENSIONS):
            continue
        for specifier in find_specifiers(content):
            name = package_name(specifier)
            if name in allowed:
                found.add(name)
    return found


def _candidate_base(specifier: str, importer: str) -> str:
    if specifier.startswith("/"):
        return posixpath.normpath(specifier)
    if specifier.startswith("components/"):
        return posixpath.normpath(posixpath.join(SOURCE_ROOT, specifier))
    return posixpath.normpath(posixpath.join(posixpath.dirname(importer), specifier))


def resolve(specifier: str, importer: str, exists: Callable[[str], bool]) -> Optional[str]:
    """Resolve a local specifier the way the bundler would.

    Tries the path itself, then each source extension, then an ``index``
    file inside a directory of that name.

    Args:
        specifier: Local import specifier
        importer: Canonical path of the importing file
        exists: Predicate telling whether a canonical path is present

    Returns:
        Canonical path of the target, or None
    """
    base = _candidate_base(specifier, importer)
    candidates = [base]
    candidates.extend(base + ext for ext in SOURCE_EXTENSIONS)
    candidates.extend(f"{base}/index{ext}" for ext in SOURCE_EXTENSIONS)
    for candidate in candidates:
        if exists(candidate):
            return candidate
    return None


def find_by_name(specifier: str, paths: Iterable[str]) -> Optional[str]:
    """Find a file matching the specifier's basename anywhere in the project.

    Exact basename matches win; for extensionless or source-extension
    specifiers a matching stem with any source extension is accepted.
    Among several matches the shallowest path wins, ties broken by name.
    """
    name = posixpath.basename(specifier.rstrip("/"))
    if not name:
        return None
    stem, ext = posixpath.splitext(name)
    paths = list(paths)

    matches = [p for p in paths if posixpath.basename(p) == name]
    if not matches and (not ext or ext in SOURCE_EXTENSIONS):
        wanted = stem if ext else name
        matches = [
            p
            for p in paths
            if p.endswith(SOURCE_EXTENSIONS)
            and posixpath.splitext(posixpath.basename(p))[0] == wanted
        ]

    if not matches:
        return None
    return min(matches, key=lambda p: (p.count("/"), p))


def placeholder_path(specifier: str) -> str:
    """Where a placeholder for an unresolvable specifier is created."""
    name = posixpath.basename(specifier.rstrip("/")) or "Missing"
    if not posixpath.splitext(name)[1]:
        name += ".js"
    return f"{SOURCE_ROOT}/{name}"


def relative_specifier(importer: str, target: str, keep_extension: bool) -> str:
    """Relative specifier from ``importer`` to ``target``."""
    rel = posixpath.relpath(target, posixpath.dirname(importer))
    if not rel.startswith("."):
        rel = f"./{rel}"
    if not keep_extension:
        root, ext = posixpath.splitext(rel)
        if ext in SOURCE_EXTENSIONS:
            rel = root
    return rel


def rewrite_imports(
    path: str,
    source: str,
    files: dict[str, str],
    on_missing: Callable[[str], str],
) -> str:
    """Rewrite local specifiers in one file so each resolves.

    Specifiers that already resolve are left untouched. Others are pointed
    at a file with the same name elsewhere in the project, or at a
    placeholder created through ``on_missing``.

    Args:
        path: Canonical path of the file being rewritten
        source: File content
        files: Canonical file map (placeholders included as they are added)
        on_missing: Called with an unresolvable specifier; registers a
            placeholder and returns its canonical path

    Returns:
        Rewritten source
    """

    def replace(match: re.Match) -> str:
        prefix, quote, specifier = match.groups()
        if not is_local(specifier):
            return match.group(0)

        if resolve(specifier, path, files.__contains__) is not None:
            return match.group(0)

        target = find_by_name(specifier, files)
        if target is None:
            target = on_missing(specifier)
            logger.debug("Placeholder %s for '%s' in %s", target, specifier, path)

        keep_extension = bool(posixpath.splitext(posixpath.basename(specifier))[1])
        new_specifier = relative_specifier(path, target, keep_extension)
        return f"{prefix}{quote}{new_specifier}{quote}"

    return SPECIFIER_RE.sub(replace, source)


def normalize_component(path: str, source: str) -> str:
    """Give a JSX module a React import and a default export.

    Files without JSX are returned unchanged.
    """
    if not path.endswith(COMPONENT_EXTENSIONS) or not JSX_RE.search(source):
        return source

    if not REACT_IMPORT_RE.search(source):
        source = "import React from 'react';\n" + source

    if not DEFAULT_EXPORT_RE.search(source):
        name = _export_name(path, source)
        if name:
            source = source.rstrip("\n") + f"\n\nexport default {name};\n"
        else:
            logger.debug("No declaration to export in %s", path)

    return source


def _export_name(path: str, source: str) -> Optional[str]:
    names = [next(g for g in m.groups() if g) for m in DECLARATION_RE.finditer(source)]
    if not names:
        return None

    stem = posixpath.splitext(posixpath.basename(path))[0]
    if stem in names:
        return stem
    for name in names:
        if name[0].isupper():
            return name
    return names[0]
