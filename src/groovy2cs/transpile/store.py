# src/groovy2cs/transpile/store.py
from __future__ import annotations

import hashlib
import json
import logging
import shutil
import time
from pathlib import Path, PurePosixPath
from typing import Any, Dict, Iterable, List, Optional

try:
    import pyarrow as pa
    import pyarrow.parquet as pq
except ImportError as e:  # pragma: no cover
    _PYARROW_MISSING: Optional[ImportError] = e
else:
    _PYARROW_MISSING = None

from .anomalies import Anomaly
from .parser_registry import TranslationResult

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0"
RECEIPT_NAME = "run_receipt.json"

# ==============================================================================
# Row schemas
# ==============================================================================

_TRANSLATION_FIELDS = (
    ("path", "string"),
    ("blob_sha", "string"),
    ("ok", "bool"),
    ("stage", "string"),           # failing stage, null when ok
    ("error_code", "string"),
    ("error_detail", "string"),
    ("error_line", "int64"),
    ("elapsed_ms", "float64"),
    ("output_path", "string"),     # relative to out_dir
    ("output_bytes", "int64"),
    ("driver_version", "string"),
    ("grammar_sha", "string"),
)

_ANOMALY_FIELDS = (
    ("path", "string"),
    ("blob_sha", "string"),
    ("kind", "string"),
    ("severity", "string"),
    ("detail", "string"),
    ("line_start", "int64"),
    ("line_end", "int64"),
    ("ts_ms", "int64"),
)


def _schema(fields) -> "pa.Schema":
    cols = [pa.field(name, pa.type_for_alias(alias)) for name, alias in fields]
    cols.append(pa.field("schema_version", pa.string()))
    return pa.schema(cols, metadata={"version": SCHEMA_VERSION})


def translation_row(r: TranslationResult, output_path: Optional[str]) -> Dict[str, Any]:
    return {
        "path": r.file.path,
        "blob_sha": r.file.blob_sha,
        "ok": bool(r.ok),
        "stage": r.stage,
        "error_code": r.error_code,
        "error_detail": r.error,
        "error_line": r.error_line,
        "elapsed_ms": round(r.elapsed_s * 1000.0, 3),
        "output_path": output_path,
        "output_bytes": len(r.output.encode("utf-8")) if output_path and r.output else 0,
        "driver_version": r.driver.version if r.driver else None,
        "grammar_sha": r.driver.grammar_sha if r.driver else None,
    }


def anomaly_row(a: Anomaly) -> Dict[str, Any]:
    row = a.to_dict()
    # no span is stored as null rather than line 0
    if a.span is None:
        row["line_start"] = row["line_end"] = None
    return row


# ==============================================================================
# Rolling Parquet series
# ==============================================================================


class _ParquetSeries:
    """
    One dataset directory of numbered Parquet parts.

    Rows accumulate in memory and become a new part on ``flush`` or once
    ``roll_rows`` is reached. Each part is read back after writing; a part
    that does not round-trip is deleted and the write fails.
    """

    def __init__(self, store: "TranslationStore", name: str, schema: "pa.Schema") -> None:
        self.store = store
        self.name = name
        self.schema = schema
        self.rows: List[Dict[str, Any]] = []
        self.parts = 0
        self.rows_written = 0
        self.dir = store.staging_dir / name
        self.dir.mkdir(parents=True, exist_ok=True)

    def add(self, row: Dict[str, Any]) -> None:
        row["schema_version"] = SCHEMA_VERSION
        self.rows.append(row)
        if len(self.rows) >= self.store.roll_rows:
            self.flush()

    def flush(self, *, force: bool = False) -> None:
        if not self.rows and not (force and self.parts == 0):
            return
        part = self.dir / f"{self.store.file_prefix}_{self.name}_{self.parts:05}.parquet"
        table = pa.Table.from_pylist(self.rows, schema=self.schema)
        self.store._write_part(table, part)
        self.parts += 1
        self.rows_written += table.num_rows
        self.rows = []


# ==============================================================================
# Store
# ==============================================================================


class TranslationStore:
    """
    Output of one batch run, assembled in ``<out_dir>.staging`` and published
    in a single rename by ``finalize``:

      cs/<input path>.cs      rendered C# for every successful translation
      translations/*.parquet  one row per translated file (zstd)
      anomalies/*.parquet     one row per anomaly (zstd)
      run_receipt.json        counts, transaction log and BLAKE2b integrity

    The previous ``out_dir``, if any, is kept as ``<out_dir>.bak``.
    """

    def __init__(
        self,
        out_dir: Path,
        *,
        zstd_level: int = 7,
        roll_rows: int = 200_000,
        max_bytes: Optional[int] = None,
        file_prefix: str = "groovy2cs",
    ) -> None:
        if _PYARROW_MISSING is not None:
            raise RuntimeError(f"TranslationStore needs pyarrow: {_PYARROW_MISSING}")

        self.out_dir = Path(out_dir)
        self.staging_dir = self.out_dir.with_name(self.out_dir.name + ".staging")
        self.zstd_level = int(zstd_level)
        self.roll_rows = max(1000, int(roll_rows))
        self.max_bytes = max_bytes
        self.file_prefix = file_prefix

        shutil.rmtree(self.staging_dir, ignore_errors=True)
        (self.staging_dir / "cs").mkdir(parents=True)
        self._translations = _ParquetSeries(self, "translations", _schema(_TRANSLATION_FIELDS))
        self._anomalies = _ParquetSeries(self, "anomalies", _schema(_ANOMALY_FIELDS))

        self.outputs = 0
        self.bytes_written = 0
        self.log: List[str] = []

    # ---- public API ----

    def append_result(self, result: TranslationResult) -> None:
        """Record one translation; successful output is written under cs/."""
        output_path = None
        if result.ok and result.output is not None:
            output_path = self.write_output(result.file.path, result.output)
        self._translations.add(translation_row(result, output_path))

    def append_anomalies(self, anomalies: Iterable[Anomaly]) -> None:
        for a in anomalies:
            self._anomalies.add(anomaly_row(a))

    def write_output(self, rel_path: str, text: str) -> str:
        """Write rendered C# for an input path; returns the path relative to out_dir."""
        rel = PurePosixPath(rel_path)
        if rel.is_absolute() or ".." in rel.parts:
            raise ValueError(f"output path must stay inside the store: {rel_path!r}")
        out_rel = (PurePosixPath("cs") / rel.with_suffix(".cs")).as_posix()
        target = self.staging_dir / out_rel
        target.parent.mkdir(parents=True, exist_ok=True)
        data = text.encode("utf-8")
        target.write_bytes(data)
        self.outputs += 1
        self._account(len(data), target)
        self.log.append(f"wrote_cs:{out_rel}")
        return out_rel

    def flush(self) -> None:
        self._translations.flush()
        self._anomalies.flush()

    def finalize(self, *, receipt: Dict) -> Dict:
        """Flush, write the receipt, publish. Returns the receipt as written."""
        # an empty run still leaves a readable part in each dataset
        self._translations.flush(force=True)
        self._anomalies.flush(force=True)

        now = time.time()
        doc: Dict[str, Any] = {
            "schema_version": SCHEMA_VERSION,
            "translation_rows": self._translations.rows_written,
            "anomaly_rows": self._anomalies.rows_written,
            "outputs": self.outputs,
            "bytes_written": self.bytes_written,
            "compression": {"algorithm": "zstd", "level": self.zstd_level},
            "files": {s.name: s.parts for s in (self._translations, self._anomalies)},
            "created_at_epoch": int(now),
            "created_at_iso": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(now)),
            "transaction_log": list(self.log),
        }
        doc.update(receipt or {})
        doc["integrity"] = {
            p.relative_to(self.staging_dir).as_posix(): hashlib.blake2b(p.read_bytes(), digest_size=16).hexdigest()
            for p in sorted(self.staging_dir.rglob("*"))
            if p.is_file()
        }
        (self.staging_dir / RECEIPT_NAME).write_text(json.dumps(doc, indent=2), encoding="utf-8")

        self._publish()
        logger.info("published %d translations to %s", doc["translation_rows"], self.out_dir)
        return doc

    # ---- internals ----

    def _account(self, size: int, path: Path) -> None:
        if self.max_bytes is not None and self.bytes_written + size > self.max_bytes:
            path.unlink(missing_ok=True)
            raise RuntimeError(
                f"TranslationStore would exceed max_bytes={self.max_bytes} "
                f"(written={self.bytes_written}, next={size}) at {path.name}"
            )
        self.bytes_written += size

    def _write_part(self, table: "pa.Table", path: Path) -> None:
        try:
            pq.write_table(
                table,
                path,
                compression="zstd",
                compression_level=self.zstd_level,
                use_dictionary=True,
                write_statistics=True,
            )
            back = pq.read_metadata(str(path)).num_rows
            if back != table.num_rows:
                raise RuntimeError(f"read back {back} rows, wrote {table.num_rows}")
        except (OSError, RuntimeError, pa.ArrowException) as e:
            path.unlink(missing_ok=True)
            raise RuntimeError(f"Parquet write verification failed for {path}: {e}") from e
        self._account(path.stat().st_size, path)
        self.log.append(f"wrote_{path.parent.name}:{path.name}")

    def _publish(self) -> None:
        backup = self.out_dir.with_name(self.out_dir.name + ".bak")
        if self.out_dir.exists():
            shutil.rmtree(backup, ignore_errors=True)
            self.out_dir.replace(backup)
        self.out_dir.parent.mkdir(parents=True, exist_ok=True)
        self.staging_dir.replace(self.out_dir)
