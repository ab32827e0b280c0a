from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Literal
from urllib.parse import unquote, urlparse

PathKind = Literal["file", "dependency", "service"]


class InvalidPath(ValueError):
    """Raised when an identifier contains traversal or system-path segments."""


class NonStringPath(TypeError):
    """Raised when a tool hands over something that is not a string identifier."""


@dataclass(frozen=True, slots=True)
class NormalizedPath:
    canonical_path: str
    confidence: float
    inside_project: bool = True
    error: InvalidPath | NonStringPath | None = None


CONFIDENCE_RELATIVE = 1.0
CONFIDENCE_ABSOLUTE_IN_PROJECT = 0.8
CONFIDENCE_RETAINED = 0.5

_SERVICE_PREFIXES = ("services/", "hosts/", "endpoints/")
_SYSTEM_PREFIXES = ("/proc/", "/dev/", "/etc/")
_URL_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")
_DRIVE_RE = re.compile(r"^[A-Za-z]:/")
# SonarQube component keys look like `org:project:src/App.java`.
_SONAR_KEY_RE = re.compile(r"^(?:[^:/\\]+:)+(?P<path>[^:].*)$")

# Tools whose "absolute" paths are rooted at the repository, not the filesystem.
_REPO_ROOTED_TOOLS = frozenset({"codacy", "deepsource", "codeclimate"})


def _is_absolute(value: str) -> bool:
    return value.startswith("/") or bool(_DRIVE_RE.match(value))


def is_project_relative(canonical_path: str) -> bool:
    """True when a canonical path names something under the project root."""

    return bool(canonical_path) and not _is_absolute(canonical_path) and not _URL_RE.match(canonical_path)


def _clean(value: str) -> str:
    """
    Collapse separators and `.` segments; reject `..` segments.

    The leading `/` or drive letter of an absolute path is kept.
    """

    value = value.replace("\\", "/")
    prefix = ""
    if value.startswith("/"):
        prefix = "/"
    elif _DRIVE_RE.match(value):
        prefix = value[:3]
        value = value[3:]

    segments: list[str] = []
    for segment in value.split("/"):
        if segment in {"", "."}:
            continue
        if segment == "..":
            raise InvalidPath(f"path traversal segment in {value!r}")
        segments.append(segment)
    return prefix + "/".join(segments)


class PathNormalizer:
    """
    Map tool-native file identifiers onto canonical project-relative paths.

    One instance is bound to a single project root and holds no other state, so
    it can be shared by every adapter in a run.
    """

    def __init__(self, project_root: Path | str) -> None:
        root = str(project_root).strip()
        if not root:
            raise ValueError("project_root must not be empty")
        self.project_root = _clean(root) or "/"
        self._case_insensitive = bool(_DRIVE_RE.match(self.project_root))

    def normalize(self, identifier: object, *, tool: str | None = None, kind: PathKind = "file") -> str:
        return self._normalize(identifier, tool=tool, kind=kind).canonical_path

    def try_normalize(self, identifier: object, *, tool: str | None = None, kind: PathKind = "file") -> NormalizedPath:
        """Like `normalize`, but report failures as a value instead of raising."""

        try:
            return self._normalize(identifier, tool=tool, kind=kind)
        except (InvalidPath, NonStringPath) as exc:
            return NormalizedPath(canonical_path="", confidence=0.0, inside_project=False, error=exc)

    def _normalize(self, identifier: object, *, tool: str | None, kind: PathKind) -> NormalizedPath:
        if identifier is None:
            return NormalizedPath(canonical_path="", confidence=CONFIDENCE_RELATIVE)
        if not isinstance(identifier, str):
            raise NonStringPath(f"expected a string identifier, got {type(identifier).__name__}")

        raw = identifier.strip()
        if not raw:
            return NormalizedPath(canonical_path="", confidence=CONFIDENCE_RELATIVE)

        raw = _apply_tool_hint(raw, tool=(tool or "").strip().lower())

        if kind == "service" or raw.startswith(_SERVICE_PREFIXES):
            if ".." in raw.replace("\\", "/").split("/"):
                raise InvalidPath(f"path traversal segment in {raw!r}")
            return NormalizedPath(canonical_path=raw, confidence=CONFIDENCE_RELATIVE)

        if raw.lower().startswith("file://"):
            raw = unquote(urlparse(raw).path)
            if _DRIVE_RE.match(raw.lstrip("/")):
                raw = raw.lstrip("/")
        elif _URL_RE.match(raw):
            return NormalizedPath(canonical_path=raw, confidence=CONFIDENCE_RETAINED, inside_project=False)

        cleaned = _clean(raw)
        confidence = CONFIDENCE_RELATIVE
        inside = True
        if _is_absolute(cleaned):
            if cleaned.startswith("/") and (cleaned + "/").startswith(_SYSTEM_PREFIXES):
                raise InvalidPath(f"system path is not a project file: {cleaned!r}")
            relative = self._relative_to_root(cleaned)
            if relative is None:
                confidence = CONFIDENCE_RETAINED
                inside = False
            else:
                cleaned = relative
                confidence = CONFIDENCE_ABSOLUTE_IN_PROJECT

        if kind == "dependency" and inside:
            cleaned = _dependency_path(cleaned)

        return NormalizedPath(canonical_path=cleaned, confidence=confidence, inside_project=inside)

    def _relative_to_root(self, cleaned: str) -> str | None:
        root = self.project_root
        candidate = cleaned
        if self._case_insensitive:
            root = root.casefold()
            candidate = candidate.casefold()
        if candidate == root:
            return ""
        prefix = root if root.endswith("/") else root + "/"
        if candidate.startswith(prefix):
            return cleaned[len(prefix) :]
        return None


def _apply_tool_hint(raw: str, *, tool: str) -> str:
    if tool == "sonarqube" and not _DRIVE_RE.match(raw.replace("\\", "/")):
        match = _SONAR_KEY_RE.match(raw)
        if match is not None:
            return match.group("path")
        return raw
    if tool == "checkmarx" and " -> " in raw:
        # Data-flow strings: the finding belongs to the source end.
        return raw.split(" -> ", 1)[0].strip()
    if tool in _REPO_ROOTED_TOOLS and raw.startswith("/"):
        return raw.lstrip("/")
    return raw


def _dependency_path(cleaned: str) -> str:
    if cleaned.startswith("node_modules/") or cleaned == "node_modules":
        return cleaned
    marker = "/node_modules/"
    idx = cleaned.find(marker)
    if idx >= 0:
        return cleaned[idx + 1 :]
    return f"node_modules/{cleaned}"
