"""Turn a generated file map into a runnable preview project."""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from sandpit.constants import (
    ALLOWED_PACKAGES,
    APP_PATH,
    ENTRY_PATH,
    HTML_PATH,
    MANIFEST_PATH,
    SOURCE_EXTENSIONS,
    SOURCE_ROOT,
    STYLESHEET_PATH,
    TAILWIND_CDN,
)
from sandpit.materializer.content import MalformedEntry, unwrap
from sandpit.materializer.imports import (
    detect_packages,
    normalize_component,
    placeholder_path,
    rewrite_imports,
)
from sandpit.materializer.paths import canonicalize_path
from sandpit.materializer.scaffold import (
    APP_TEMPLATE,
    ENTRY_TEMPLATE,
    HTML_TEMPLATE,
    STYLESHEET_TEMPLATE,
    build_manifest,
    placeholder_for,
)

logger = logging.getLogger(__name__)

APP_CANDIDATES = (APP_PATH, "/src/App.jsx", "/src/App.ts", "/src/App.tsx")

# Files the runtime scaffold owns; generated versions are replaced
SCAFFOLD_OWNED = {ENTRY_PATH: ENTRY_TEMPLATE, HTML_PATH: HTML_TEMPLATE}


@dataclass
class MaterializedProject:
    """A canonical project ready for the preview runtime.

    Attributes:
        files: Canonical path -> content, manifest included
        dependencies: Package -> version range, as written to the manifest
        placeholders: Paths created for unresolvable imports
        skipped: Input paths that were dropped or replaced
    """

    files: dict[str, str]
    dependencies: dict[str, str]
    placeholders: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def app_path(self) -> Optional[str]:
        return next((p for p in APP_CANDIDATES if p in self.files), None)

    def to_sandpack(self) -> dict:
        """Render the project as a Sandpack ``react`` template payload."""
        active = self.app_path or ENTRY_PATH
        return {
            "files": dict(self.files),
            "template": "react",
            "customSetup": {"dependencies": dict(self.dependencies)},
            "options": {
                "visibleFiles": [active],
                "activeFile": active,
                "externalResources": [TAILWIND_CDN],
            },
        }


class Materializer:
    """Canonicalizes paths, fills in the scaffold and resolves imports."""

    def __init__(self, allowed_packages: Optional[Mapping[str, str]] = None):
        """Initialize materializer.

        Args:
            allowed_packages: Extra packages (name -> version range) on top
                of the built-in allowlist
        """
        self.allowed_packages = dict(ALLOWED_PACKAGES)
        self.allowed_packages.update(allowed_packages or {})

    def materialize(self, files: Mapping[str, Any]) -> MaterializedProject:
        """Build the canonical project.

        Running this again on the returned ``files`` gives the same files
        and dependencies.

        Args:
            files: Generated path -> content (string or ``{"code": str}``)

        Returns:
            MaterializedProject
        """
        skipped: list[str] = []
        placeholders: list[str] = []
        project = self._canonicalize(files, skipped)

        for path, template in SCAFFOLD_OWNED.items():
            if path in project:
                skipped.append(path)
            project[path] = template
        if STYLESHEET_PATH not in project:
            project[STYLESHEET_PATH] = STYLESHEET_TEMPLATE
        if not any(p in project for p in APP_CANDIDATES):
            logger.info("No App component generated, using default")
            project[APP_PATH] = APP_TEMPLATE

        def add_placeholder(specifier: str) -> str:
            target = placeholder_path(specifier)
            if target not in project:
                project[target] = placeholder_for(target)
                placeholders.append(target)
            return target

        for path in list(project):
            if path.endswith(SOURCE_EXTENSIONS):
                project[path] = rewrite_imports(path, project[path], project, add_placeholder)

        for path in list(project):
            if path.startswith(f"{SOURCE_ROOT}/") and path not in SCAFFOLD_OWNED:
                project[path] = normalize_component(path, project[path])

        detected = detect_packages(project, self.allowed_packages)
        dependencies = {name: self.allowed_packages[name] for name in sorted(detected)}
        project[MANIFEST_PATH] = build_manifest(dependencies)
        dependencies = json.loads(project[MANIFEST_PATH])["dependencies"]

        if placeholders:
            logger.info("Created %d placeholder(s): %s", len(placeholders), ", ".join(placeholders))

        return MaterializedProject(
            files=dict(sorted(project.items())),
            dependencies=dependencies,
            placeholders=placeholders,
            skipped=skipped,
        )

    def _canonicalize(self, files: Mapping[str, Any], skipped: list[str]) -> dict[str, str]:
        project: dict[str, str] = {}
        sources: dict[str, str] = {}
        for raw_path, value in files.items():
            try:
                content = unwrap(value)
                path = canonicalize_path(raw_path)
            except (MalformedEntry, TypeError, ValueError, AttributeError) as e:
                logger.warning("Skipping malformed entry %r: %s", raw_path, e)
                skipped.append(str(raw_path))
                continue

            if content is None:
                logger.debug("Dropping empty file %s", raw_path)
                skipped.append(str(raw_path))
                continue

            if path == MANIFEST_PATH:
                # Regenerated from detected imports
                skipped.append(str(raw_path))
                continue

            if path in project:
                # Later entries are newer writes
                logger.warning("%r and %r both map to %s, keeping %r", sources[path], raw_path, path, raw_path)
                skipped.append(sources[path])
            project[path] = content.text
            sources[path] = str(raw_path)
        return project


def materialize(
    files: Mapping[str, Any], allowed_packages: Optional[Mapping[str, str]] = None
) -> MaterializedProject:
    """Convenience wrapper around ``Materializer.materialize``."""
    return Materializer(allowed_packages).materialize(files)
