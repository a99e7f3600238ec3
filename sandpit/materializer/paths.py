"""Canonical path layout for the preview runtime."""

import posixpath

from sandpit.constants import APP_PATH, ROOT_FILENAMES, SOURCE_ROOT

APP_FILENAMES = {"App.js", "App.jsx"}


def canonicalize_path(path: str) -> str:
    """Map a generated file path to its place in the canonical project.

    - ``App.js`` / ``src/App.jsx`` and friends become ``/src/App.js``
    - anything under a ``components/`` directory is flattened to
      ``/src/<filename>``
    - recognized root files (``package.json``, ``tailwind.config.js``, ...)
      stay at the root
    - files already under ``src/`` or ``public/`` keep their location
    - everything else moves under ``/src/``

    Args:
        path: Path as produced by generation

    Returns:
        Canonical absolute path

    Raises:
        ValueError: If the path is empty or names a directory
    """
    clean = _clean(path)
    if not clean or clean.endswith("/"):
        raise ValueError(f"not a file path: {path!r}")

    parts = clean.split("/")
    filename = parts[-1]

    if filename in APP_FILENAMES and parts[:-1] in ([], ["src"]):
        return APP_PATH

    if "components" in parts[:-1]:
        return f"{SOURCE_ROOT}/{filename}"

    if len(parts) == 1 and filename in ROOT_FILENAMES:
        return f"/{filename}"

    if parts[0] in ("src", "public") and len(parts) > 1:
        return f"/{clean}"

    return f"{SOURCE_ROOT}/{clean}"


def _clean(path: str) -> str:
    clean = path.strip().replace("\\", "/")
    while clean.startswith(("./", "/")):
        clean = clean[2:] if clean.startswith("./") else clean[1:]
    if not clean:
        return ""
    trailing = "/" if clean.endswith("/") else ""
    normalized = posixpath.normpath(clean)
    # Never let a generated path climb out of the project
    normalized = "/".join(p for p in normalized.split("/") if p not in ("..", "."))
    return normalized + trailing if normalized else ""
