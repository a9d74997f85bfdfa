# src/groovy2cs/transpile/discovery.py
from __future__ import annotations

import codecs
import fnmatch
import hashlib
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional, Tuple

from .anomalies import Anomaly, AnomalyKind, AnomalySink, Severity

# ==============================================================================
# Source file model
# ==============================================================================


class Language(Enum):
    GROOVY = "groovy"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class FileMeta:
    path: str                 # posix path relative to the discovery root
    real_path: str            # absolute path on disk ("" for in-memory sources)
    blob_sha: str             # BLAKE2b-256 of the raw bytes
    size_bytes: int
    lang: Language
    encoding: Optional[str] = "utf-8"
    is_text: bool = True


@dataclass(frozen=True)
class DiscoveryConfig:
    max_file_size_bytes: int = 4 * 1024 * 1024
    follow_symlinks: bool = False
    sniff_bytes: int = 64 * 1024
    include_globs: Tuple[str, ...] = ()
    exclude_globs: Tuple[str, ...] = (
        ".git/*",
        ".gradle/*",
        "build/*",
        "out/*",
        "target/*",
    )
    groovy_exts: Tuple[str, ...] = (".groovy", ".gvy", ".gy", ".gsh")

    def language_of(self, rel: str) -> Language:
        return Language.GROOVY if rel.lower().endswith(self.groovy_exts) else Language.UNKNOWN

    def wants(self, rel: str) -> bool:
        if self.include_globs and not any(fnmatch.fnmatch(rel, g) for g in self.include_globs):
            return False
        return not any(fnmatch.fnmatch(rel, g) for g in self.exclude_globs)


# ==============================================================================
# Content sniffing
# ==============================================================================

_BOMS = (
    (codecs.BOM_UTF8, "utf-8-sig"),
    (codecs.BOM_UTF16_LE, "utf-16-le"),
    (codecs.BOM_UTF16_BE, "utf-16-be"),
)
_TEXT_CONTROLS = frozenset(b"\t\n\v\f\r")


def _sniff_encoding(head: bytes) -> Optional[str]:
    """
    Guess how to decode a file from its first bytes.

    Returns the BOM codec when one is present, ``None`` for binary content
    (NUL bytes or more than 2% stray control bytes), ``"latin-1"`` when the
    head is not valid UTF-8, and ``"utf-8"`` otherwise.
    """
    bom = next((name for sig, name in _BOMS if head.startswith(sig)), None)
    if bom:
        return bom
    if b"\x00" in head:
        return None
    if head:
        stray = sum(1 for b in head if b < 32 and b not in _TEXT_CONTROLS)
        if stray / len(head) > 0.02:
            return None
    try:
        head.decode("utf-8")
    except UnicodeDecodeError as e:
        # a multi-byte sequence cut off at the sniff boundary is still UTF-8
        if e.reason != "unexpected end of data":
            return "latin-1"
    return "utf-8"


def _digest_file(path: Path, sniff_bytes: int) -> Tuple[str, bytes]:
    h = hashlib.blake2b(digest_size=32)
    head = b""
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(1 << 20), b""):
            h.update(chunk)
            if len(head) < sniff_bytes:
                head += chunk[: sniff_bytes - len(head)]
    return h.hexdigest(), head


# ==============================================================================
# Walk
# ==============================================================================


def _walk_sorted(root: Path, cfg: DiscoveryConfig, sink: AnomalySink) -> Iterator[Tuple[str, Path]]:
    """Yield (relative posix path, path) for regular files, depth-first in name order."""
    stack = [root]
    while stack:
        cur = stack.pop()
        try:
            with os.scandir(cur) as it:
                entries = sorted(it, key=lambda e: e.name, reverse=True)
        except OSError as e:
            rel = cur.relative_to(root).as_posix()
            sink.emit(Anomaly(path=rel, blob_sha="", kind=AnomalyKind.IO_ERROR,
                              severity=Severity.WARN, detail=f"Cannot list directory: {e}"))
            continue
        files = []
        for entry in entries:
            try:
                if entry.is_dir(follow_symlinks=cfg.follow_symlinks):
                    stack.append(Path(entry.path))
                elif entry.is_file(follow_symlinks=cfg.follow_symlinks):
                    files.append(Path(entry.path))
            except OSError:
                continue
        # files of a directory come before its subdirectories' files
        for p in reversed(files):
            yield p.relative_to(root).as_posix(), p


def iter_discovered_files(
    root: Path,
    cfg: Optional[DiscoveryConfig] = None,
    anomaly_sink: Optional[AnomalySink] = None,
) -> Iterator[FileMeta]:
    """
    Yield a FileMeta for every Groovy source under ``root``.

    Files with other extensions are passed over silently. Oversized, unreadable,
    binary and non-UTF-8 Groovy files are reported to the sink; all but the
    last are left out of the result.
    """
    cfg = cfg or DiscoveryConfig()
    root = Path(root).resolve()
    if not root.is_dir():
        raise NotADirectoryError(f"Discovery root not found or not a directory: {root}")
    sink = anomaly_sink if anomaly_sink is not None else AnomalySink()

    for rel, path in _walk_sorted(root, cfg, sink):
        lang = cfg.language_of(rel)
        if lang is Language.UNKNOWN or not cfg.wants(rel):
            continue

        def report(kind: AnomalyKind, severity: Severity, detail: str, sha: str = "") -> None:
            sink.emit(Anomaly(path=rel, blob_sha=sha, kind=kind, severity=severity, detail=detail))

        try:
            size = path.stat().st_size
            if size > cfg.max_file_size_bytes:
                report(AnomalyKind.SIZE_LIMIT, Severity.WARN, f"{size} bytes exceeds {cfg.max_file_size_bytes}")
                continue
            sha, head = _digest_file(path, cfg.sniff_bytes)
        except OSError as e:
            report(AnomalyKind.IO_ERROR, Severity.WARN, f"Read failed: {e}")
            continue

        encoding = _sniff_encoding(head)
        if encoding is None:
            report(AnomalyKind.SKIPPED, Severity.INFO, "Binary content detected", sha)
            continue
        if encoding == "latin-1":
            report(AnomalyKind.ENCODING, Severity.WARN, "Not valid UTF-8; decoding as latin-1", sha)

        yield FileMeta(path=rel, real_path=str(path), blob_sha=sha, size_bytes=size, lang=lang, encoding=encoding)


def file_meta_for_text(path: str, text: str) -> FileMeta:
    """FileMeta for source held in memory."""
    data = text.encode("utf-8")
    return FileMeta(
        path=path,
        real_path="",
        blob_sha=hashlib.blake2b(data, digest_size=32).hexdigest(),
        size_bytes=len(data),
        lang=Language.GROOVY,
    )
