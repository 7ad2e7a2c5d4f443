"""Read and patch ``.gitmodules``.

The file is kept as raw lines grouped into sections so that adding,
updating or removing one submodule rewrites only that submodule's lines.
Every other byte of the file, including comments and sections modkeeper
does not understand, is written back untouched.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Iterator

from modkeeper.errors import ConflictError, ManifestParseError
from modkeeper.state.model import SubmoduleSpec

logger = logging.getLogger(__name__)

_HEADER_RE = re.compile(
    r'^\s*\[\s*([A-Za-z0-9.-]+)(?:\s+"((?:[^"\\]|\\.)*)")?\s*\]\s*(?:[#;].*)?$'
)
_KEY_RE = re.compile(r"^(\s*)([A-Za-z][A-Za-z0-9-]*)\s*(?:=(.*))?$")
_ESCAPES = {"n": "\n", "t": "\t", "b": "\b", '"': '"', "\\": "\\"}


@dataclass
class _Entry:
    key: str
    value: str
    lines: list[str]


@dataclass
class _Section:
    header: str
    kind: str
    subsection: str | None
    body: list = field(default_factory=list)  # raw str lines and _Entry objects
    leading: list[str] = field(default_factory=list)  # comment lines right above the header

    @property
    def is_submodule(self) -> bool:
        return self.kind == "submodule" and self.subsection is not None

    def entries(self) -> list[_Entry]:
        return [item for item in self.body if isinstance(item, _Entry)]

    def get(self, key: str) -> str | None:
        value = None
        for entry in self.entries():
            if entry.key == key:
                value = entry.value
        return value

    def lines(self) -> Iterator[str]:
        yield from self.leading
        yield self.header
        for item in self.body:
            if isinstance(item, _Entry):
                yield from item.lines
            else:
                yield item


def _is_comment(line) -> bool:
    return isinstance(line, str) and line.strip()[:1] in ("#", ";")


def _pop_leading_comments(lines: list) -> list[str]:
    """Detach the run of comment lines ending ``lines``; they describe the next section."""
    start = len(lines)
    while start > 0 and _is_comment(lines[start - 1]):
        start -= 1
    leading = lines[start:]
    del lines[start:]
    return leading


def _has_continuation(text: str) -> bool:
    stripped = text.rstrip("\r\n")
    trailing = len(stripped) - len(stripped.rstrip("\\"))
    return trailing % 2 == 1


def _parse_value(raw: str, source: str | None, line_no: int) -> str:
    """Decode a git config value: quotes, escapes and trailing comments."""
    out: list[str] = []
    pending_space = ""
    in_quote = False
    i = 0
    while i < len(raw):
        c = raw[i]
        if c == "\\":
            if i + 1 >= len(raw):
                raise ManifestParseError("dangling backslash", source, line_no)
            nxt = raw[i + 1]
            if nxt == "\n":
                i += 2
                continue
            if nxt == "\r" and raw[i + 2:i + 3] == "\n":
                i += 3
                continue
            if nxt not in _ESCAPES:
                raise ManifestParseError(f"invalid escape sequence \\{nxt}", source, line_no)
            out.append(pending_space + _ESCAPES[nxt])
            pending_space = ""
            i += 2
            continue
        if c == '"':
            out.append(pending_space)
            pending_space = ""
            in_quote = not in_quote
            i += 1
            continue
        if not in_quote:
            if c in "#;":
                break
            if c in " \t\r\n":
                if out:
                    pending_space += c if c not in "\r\n" else ""
                i += 1
                continue
        out.append(pending_space + c)
        pending_space = ""
        i += 1
    if in_quote:
        raise ManifestParseError("unterminated quoted value", source, line_no)
    return "".join(out)


def _format_value(value: str) -> str:
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\t", "\\t")
    )
    needs_quotes = value != value.strip() or any(c in value for c in "#;")
    return f'"{escaped}"' if needs_quotes else escaped


def _format_subsection(name: str) -> str:
    return name.replace("\\", "\\\\").replace('"', '\\"')


def _unescape_subsection(raw: str) -> str:
    return re.sub(r"\\(.)", r"\1", raw)


def normalize_path(path: str) -> str:
    """Canonical top-level relative form of a submodule path."""
    cleaned = path.strip().replace("\\", "/").rstrip("/")
    pure = PurePosixPath(cleaned)
    if not cleaned or pure.is_absolute() or ".." in pure.parts:
        raise ValueError(f"submodule path must be relative to the repository root: {path!r}")
    return pure.as_posix()


def paths_overlap(a: str, b: str) -> bool:
    """True when ``a`` equals ``b`` or one is nested inside the other."""
    pa, pb = PurePosixPath(a).parts, PurePosixPath(b).parts
    shorter = min(len(pa), len(pb))
    return pa[:shorter] == pb[:shorter]


class Manifest:
    """Ordered, format-preserving view of ``.gitmodules``."""

    def __init__(self, source: Path | str | None = None) -> None:
        self.source = str(source) if source is not None else None
        self._preamble: list[str] = []
        self._sections: list[_Section] = []
        self._eol = "\n"

    # ── Loading ──────────────────────────────────────────────────

    @classmethod
    def load(cls, path: Path | str) -> "Manifest":
        """Parse ``path``; a missing file is an empty manifest."""
        manifest_path = Path(path)
        if not manifest_path.exists():
            logger.debug("No manifest at %s", manifest_path)
            return cls(source=manifest_path)
        with open(manifest_path, newline="") as f:
            text = f.read()
        return cls.parse(text, source=manifest_path)

    @classmethod
    def parse(cls, text: str, source: Path | str | None = None) -> "Manifest":
        """Parse manifest text.

        Raises:
            ManifestParseError: On malformed lines or broken invariants.
        """
        manifest = cls(source=source)
        src = manifest.source
        if "\r\n" in text:
            manifest._eol = "\r\n"

        lines = text.splitlines(keepends=True)
        current: _Section | None = None
        i = 0
        while i < len(lines):
            line = lines[i]
            line_no = i + 1
            stripped = line.strip()

            if not stripped or stripped[0] in "#;":
                (current.body if current else manifest._preamble).append(line)
                i += 1
                continue

            if stripped.startswith("["):
                match = _HEADER_RE.match(line.rstrip("\r\n"))
                if not match:
                    raise ManifestParseError(f"malformed section header: {stripped}", src, line_no)
                kind = match.group(1).lower()
                subsection = match.group(2)
                if subsection is not None:
                    subsection = _unescape_subsection(subsection)
                elif kind.startswith("submodule."):
                    # deprecated [submodule.name] form
                    kind, subsection = "submodule", match.group(1)[len("submodule."):]
                leading = _pop_leading_comments(current.body if current else manifest._preamble)
                current = _Section(header=line, kind=kind, subsection=subsection, leading=leading)
                manifest._sections.append(current)
                i += 1
                continue

            if current is None:
                raise ManifestParseError(f"key outside of any section: {stripped}", src, line_no)

            raw_lines = [line]
            while _has_continuation(raw_lines[-1]) and i + len(raw_lines) < len(lines):
                raw_lines.append(lines[i + len(raw_lines)])
            joined = "".join(raw_lines).rstrip("\r\n")
            match = _KEY_RE.match(joined.split("\n", 1)[0].rstrip("\r"))
            if not match:
                raise ManifestParseError(f"malformed line: {stripped}", src, line_no)
            key = match.group(2).lower()
            if match.group(3) is None:
                value = "true"
            else:
                value = _parse_value(joined[joined.index("=") + 1:], src, line_no)
            current.body.append(_Entry(key=key, value=value, lines=raw_lines))
            i += len(raw_lines)

        manifest._validate()
        return manifest

    def _validate(self) -> None:
        seen_names: set[str] = set()
        specs: list[SubmoduleSpec] = []
        for section in self._sections:
            if not section.is_submodule:
                continue
            name = section.subsection
            line_no = self._line_of(section)
            if name in seen_names:
                raise ManifestParseError(f"duplicate submodule name {name!r}", self.source, line_no)
            seen_names.add(name)
            spec = self._spec_of(section)
            for other in specs:
                if paths_overlap(spec.path, other.path):
                    raise ManifestParseError(
                        f"path {spec.path!r} of submodule {name!r} overlaps "
                        f"path {other.path!r} of submodule {other.name!r}",
                        self.source, line_no,
                    )
            specs.append(spec)

    def _line_of(self, section: _Section) -> int:
        count = len(self._preamble)
        for other in self._sections:
            if other is section:
                return count + len(section.leading) + 1
            count += sum(1 for _ in other.lines())
        return count

    def _spec_of(self, section: _Section) -> SubmoduleSpec:
        name = section.subsection
        path = section.get("path")
        url = section.get("url")
        line_no = self._line_of(section)
        if not path:
            raise ManifestParseError(f"submodule {name!r} has no path", self.source, line_no)
        if not url:
            raise ManifestParseError(f"submodule {name!r} has no url", self.source, line_no)
        try:
            path = normalize_path(path)
        except ValueError as e:
            raise ManifestParseError(str(e), self.source, line_no) from e
        return SubmoduleSpec(name=name, path=path, url=url, branch=section.get("branch") or None)

    # ── Queries ──────────────────────────────────────────────────

    @property
    def specs(self) -> list[SubmoduleSpec]:
        return [self._spec_of(s) for s in self._sections if s.is_submodule]

    def __iter__(self) -> Iterator[SubmoduleSpec]:
        return iter(self.specs)

    def __len__(self) -> int:
        return sum(1 for s in self._sections if s.is_submodule)

    def __contains__(self, name: object) -> bool:
        return self._find(name) is not None

    def get(self, name: str) -> SubmoduleSpec | None:
        section = self._find(name)
        return self._spec_of(section) if section else None

    def find_by_path(self, path: str) -> SubmoduleSpec | None:
        target = normalize_path(path)
        for spec in self.specs:
            if spec.path == target:
                return spec
        return None

    def _find(self, name: object) -> _Section | None:
        for section in self._sections:
            if section.is_submodule and section.subsection == name:
                return section
        return None

    # ── Targeted edits ───────────────────────────────────────────

    def add(self, spec: SubmoduleSpec) -> None:
        """Append a new section for ``spec``.

        Raises:
            ConflictError: If the name or path is taken, or the path nests.
        """
        path = normalize_path(spec.path)
        if self._find(spec.name) is not None:
            raise ConflictError(f"submodule {spec.name!r} already exists in .gitmodules")
        for other in self.specs:
            if paths_overlap(path, other.path):
                raise ConflictError(
                    f"path {path!r} overlaps submodule {other.name!r} at {other.path!r}"
                )

        eol = self._eol
        last = self._last_line()
        if last is not None and not last.endswith("\n"):
            self._terminate_last_line()

        section = _Section(
            header=f'[submodule "{_format_subsection(spec.name)}"]{eol}',
            kind="submodule",
            subsection=spec.name,
        )
        for key, value in (("path", path), ("url", spec.url), ("branch", spec.branch)):
            if value is None:
                continue
            section.body.append(
                _Entry(key=key, value=value, lines=[f"\t{key} = {_format_value(value)}{eol}"])
            )
        self._sections.append(section)
        logger.debug("Added submodule %s to manifest", spec.name)

    def update(self, spec: SubmoduleSpec) -> bool:
        """Rewrite the keys of an existing section to match ``spec``.

        Lines whose value already matches are left as they are.
        Returns True when anything changed.

        Raises:
            KeyError: If no section named ``spec.name`` exists.
            ConflictError: If the new path collides with another submodule.
        """
        section = self._find(spec.name)
        if section is None:
            raise KeyError(spec.name)
        path = normalize_path(spec.path)
        for other in self.specs:
            if other.name != spec.name and paths_overlap(path, other.path):
                raise ConflictError(
                    f"path {path!r} overlaps submodule {other.name!r} at {other.path!r}"
                )

        changed = False
        for key, value in (("path", path), ("url", spec.url), ("branch", spec.branch)):
            changed |= self._set_key(section, key, value)
        if changed:
            logger.debug("Updated submodule %s in manifest", spec.name)
        return changed

    def upsert(self, spec: SubmoduleSpec) -> bool:
        if self._find(spec.name) is None:
            self.add(spec)
            return True
        return self.update(spec)

    def remove(self, name: str) -> bool:
        """Drop the section named ``name``; False when it was not there."""
        section = self._find(name)
        if section is None:
            return False
        self._sections.remove(section)
        logger.debug("Removed submodule %s from manifest", name)
        return True

    def _set_key(self, section: _Section, key: str, value: str | None) -> bool:
        entries = [e for e in section.entries() if e.key == key]
        if value is None:
            if not entries:
                return False
            section.body = [item for item in section.body if item not in entries]
            return True

        if entries and entries[-1].value == value and len(entries) == 1:
            return False

        indent = "\t"
        existing = entries[-1] if entries else (section.entries() or [None])[-1]
        if existing is not None:
            match = _KEY_RE.match(existing.lines[0].rstrip("\r\n"))
            if match:
                indent = match.group(1)
        eol = self._eol
        new_entry = _Entry(key=key, value=value, lines=[f"{indent}{key} = {_format_value(value)}{eol}"])

        if entries:
            anchor = entries[-1]
            body = []
            for item in section.body:
                if item is anchor:
                    body.append(new_entry)
                elif item in entries:
                    continue
                else:
                    body.append(item)
            section.body = body
            return True

        # insert after the last key line, before trailing blanks/comments
        insert_at = 0
        for idx, item in enumerate(section.body):
            if isinstance(item, _Entry):
                insert_at = idx + 1
        if insert_at == 0 and not section.header.endswith("\n"):
            section.header += eol
        elif insert_at > 0:
            previous = section.body[insert_at - 1]
            if not previous.lines[-1].endswith("\n"):
                previous.lines[-1] += eol
        section.body.insert(insert_at, new_entry)
        return True

    # ── Output ───────────────────────────────────────────────────

    def _last_line(self) -> str | None:
        all_lines = list(self._iter_lines())
        return all_lines[-1] if all_lines else None

    def _terminate_last_line(self) -> None:
        if self._sections:
            section = self._sections[-1]
            if section.body:
                last = section.body[-1]
                if isinstance(last, _Entry):
                    last.lines[-1] += self._eol
                else:
                    section.body[-1] = last + self._eol
            else:
                section.header += self._eol
        elif self._preamble:
            self._preamble[-1] += self._eol

    def _iter_lines(self) -> Iterator[str]:
        yield from self._preamble
        for section in self._sections:
            yield from section.lines()

    def render(self) -> str:
        return "".join(self._iter_lines())

    def save(self, path: Path | str | None = None) -> Path:
        """Write the manifest back to ``path`` (defaults to where it was loaded from)."""
        target = Path(path) if path else (Path(self.source) if self.source else None)
        if target is None:
            raise ValueError("no path to save the manifest to")
        with open(target, "w", newline="") as f:
            f.write(self.render())
        return target
