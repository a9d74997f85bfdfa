# src/groovy2cs/transpile/parser_registry.py
from __future__ import annotations

import concurrent.futures as futures
import logging
import time
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Deque, Dict, Iterable, Iterator, Optional, Tuple

from .anomalies import Anomaly, AnomalyKind, AnomalySink, Severity
from .csharp_render import CSharpRenderer
from .discovery import FileMeta, Language
from .errors import TranslationError
from .normalize import Normalizer
from .parse_tree import ParseNode
from .transformer import Transformer

logger = logging.getLogger(__name__)

# ==============================================================================
# Parser drivers
# ==============================================================================


@dataclass(frozen=True)
class DriverInfo:
    language: Language
    grammar_name: str
    grammar_sha: str   # SHA-1 of the grammar text the driver was built from
    version: str


class ParserError(TranslationError):
    """Syntax error (or unmapped grammar rule) raised by a driver's ``parse``."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        line_start: Optional[int] = None,
        line_end: Optional[int] = None,
        column: Optional[int] = None,
        detail: Optional[str] = None,
    ) -> None:
        super().__init__(code, message, line_start=line_start, line_end=line_end, detail=detail)
        self.column = column


class ParserDriver:
    """
    Turns normalized source of one language into a ParseNode tree.

    One driver instance serves every worker thread, so ``parse`` must not keep
    per-call state on the instance. It either returns a complete tree or raises
    ParserError; ``info`` must fill in every DriverInfo field.
    """

    def info(self) -> DriverInfo:
        raise NotImplementedError

    def parse(self, text: str) -> ParseNode:
        raise NotImplementedError


# ==============================================================================
# Registry types
# ==============================================================================


@dataclass(frozen=True)
class TranslateConfig:
    per_file_timeout_sec: float = 8.0
    max_workers: int = 4
    enable_langs: frozenset[Language] = frozenset({Language.GROOVY})


class Stage:
    READ = "read"
    NORMALIZE = "normalize"
    PARSE = "parse"
    TRANSFORM = "transform"
    RENDER = "render"


@dataclass
class TranslationResult:
    file: FileMeta
    driver: Optional[DriverInfo]
    output: Optional[str]              # rendered C#, None when not ok
    elapsed_s: float
    ok: bool
    stage: Optional[str] = None        # failing stage when not ok
    error_code: Optional[str] = None
    error: Optional[str] = None
    error_line: Optional[int] = None


_Slot = Tuple[FileMeta, Optional[DriverInfo], "futures.Future[TranslationResult]"]


# ==============================================================================
# Registry
# ==============================================================================


class TranslationRegistry:
    """
    Maps languages to parser drivers and translates many files concurrently.

    At most ``max_workers`` files are in flight. Results come back in input
    order; a file that fails or times out still yields a result carrying its
    own FileMeta. Normalizer and Transformer are created per file, so only
    drivers are shared between threads.
    """

    def __init__(
        self,
        drivers: Dict[Language, ParserDriver],
        cfg: Optional[TranslateConfig] = None,
        anomaly_sink: Optional[AnomalySink] = None,
    ) -> None:
        self._cfg = cfg or TranslateConfig()
        self._sink = anomaly_sink or AnomalySink()
        self._drivers: Dict[Language, Tuple[ParserDriver, DriverInfo]] = {}
        for lang, drv in drivers.items():
            info = drv.info()
            if not (info.grammar_name and info.grammar_sha and info.version):
                raise ValueError(f"Driver for {lang.value} returned incomplete DriverInfo: {info}")
            if info.language is not lang:
                raise ValueError(f"Driver registered for {lang.value} parses {info.language.value}")
            self._drivers[lang] = (drv, info)

    @property
    def sink(self) -> AnomalySink:
        return self._sink

    # ---- public API ----

    def translate_files(self, files: Iterable[FileMeta]) -> Iterator[TranslationResult]:
        """Translate files read from disk (``FileMeta.real_path``)."""
        return self._run((fm, None) for fm in files)

    def translate_texts(self, items: Iterable[Tuple[FileMeta, str]]) -> Iterator[TranslationResult]:
        """Translate in-memory sources paired with their FileMeta."""
        return self._run(items)

    # ---- scheduling ----

    def _run(self, items: Iterable[Tuple[FileMeta, Optional[str]]]) -> Iterator[TranslationResult]:
        window = max(1, self._cfg.max_workers)
        source = iter(items)
        with futures.ThreadPoolExecutor(max_workers=window, thread_name_prefix="groovy2cs-translate") as pool:
            inflight: Deque[_Slot] = deque()

            def refill() -> None:
                while len(inflight) < window:
                    try:
                        fm, text = next(source)
                    except StopIteration:
                        return
                    inflight.append(self._submit(pool, fm, text))

            refill()
            while inflight:
                fm, info, fut = inflight.popleft()
                try:
                    result = fut.result(timeout=self._cfg.per_file_timeout_sec)
                except futures.TimeoutError:
                    # the worker keeps running; its late result is dropped
                    result = self._timed_out(fm, info)
                self._sink.incr("translate_completed_total")
                yield result
                refill()

    def _submit(self, pool: futures.ThreadPoolExecutor, fm: FileMeta, text: Optional[str]) -> _Slot:
        self._sink.incr("translate_submitted_total")
        bound = self._drivers.get(fm.lang) if fm.lang in self._cfg.enable_langs else None
        if bound is None:
            self._sink.emit(
                Anomaly(
                    path=fm.path,
                    blob_sha=fm.blob_sha,
                    kind=AnomalyKind.LANG_UNKNOWN if fm.lang is Language.UNKNOWN else AnomalyKind.SKIPPED,
                    severity=Severity.INFO,
                    detail=f"No translation driver for language {fm.lang.value}",
                )
            )
            done: futures.Future[TranslationResult] = futures.Future()
            done.set_result(
                TranslationResult(file=fm, driver=None, output=None, elapsed_s=0.0, ok=False,
                                  error_code="NO_DRIVER", error="no-driver")
            )
            return fm, None, done
        drv, info = bound
        return fm, info, pool.submit(self._translate_one, drv, info, fm, text)

    def _timed_out(self, fm: FileMeta, info: Optional[DriverInfo]) -> TranslationResult:
        limit = self._cfg.per_file_timeout_sec
        self._sink.incr("translate_timeouts_total")
        self._sink.emit(
            Anomaly(
                path=fm.path,
                blob_sha=fm.blob_sha,
                kind=AnomalyKind.TIMEOUT,
                severity=Severity.ERROR,
                detail=f"Translation exceeded timeout ({limit}s)",
            )
        )
        return TranslationResult(file=fm, driver=info, output=None, elapsed_s=limit, ok=False,
                                 error_code="TIMEOUT", error="timeout")

    # ---- one unit ----

    def _translate_one(
        self,
        drv: ParserDriver,
        info: DriverInfo,
        fm: FileMeta,
        text: Optional[str],
    ) -> TranslationResult:
        """
        Run normalize → parse → transform → render for one unit, recording the
        failing stage on error.
        """
        start = time.perf_counter()
        stage = Stage.READ
        try:
            if text is None:
                text = Path(fm.real_path).read_bytes().decode(fm.encoding or "utf-8")
            stage = Stage.NORMALIZE
            normalized = Normalizer().normalize(text)
            stage = Stage.PARSE
            tree = drv.parse(normalized)
            stage = Stage.TRANSFORM
            unit = Transformer().transform(tree)
            stage = Stage.RENDER
            output = CSharpRenderer().render(unit)
        except TranslationError as e:
            return self._failed(fm, info, start, stage, e.code, e.describe(), e.line_start)
        except (OSError, UnicodeDecodeError) as e:
            return self._failed(fm, info, start, stage, "IO_ERROR", f"{type(e).__name__}: {e}", None)
        except Exception as e:
            logger.exception("unexpected failure translating %s", fm.path)
            return self._failed(fm, info, start, stage, "INTERNAL", f"{type(e).__name__}: {e}", None)

        elapsed = time.perf_counter() - start
        self._sink.incr("translate_files_ok_total")
        self._sink.observe_duration("translate_seconds", fm.path, elapsed)
        return TranslationResult(file=fm, driver=info, output=output, elapsed_s=elapsed, ok=True)

    def _failed(
        self,
        fm: FileMeta,
        info: DriverInfo,
        start: float,
        stage: str,
        code: str,
        detail: str,
        line: Optional[int],
    ) -> TranslationResult:
        elapsed = time.perf_counter() - start
        logger.warning("%s failed at %s: %s", fm.path, stage, detail)
        self._sink.incr(f"translate_failed_{stage}_total")
        self._sink.observe_duration("translate_seconds", fm.path, elapsed)
        self._sink.emit(
            Anomaly.for_failure(fm.path, fm.blob_sha, stage=stage, code=code, detail=detail, line=line)
        )
        return TranslationResult(
            file=fm,
            driver=info,
            output=None,
            elapsed_s=elapsed,
            ok=False,
            stage=stage,
            error_code=code,
            error=detail,
            error_line=line,
        )
