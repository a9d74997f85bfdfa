# src/groovy2cs/transpile/__main__.py
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from .anomalies import AnomalySink
from .api import BatchConfig, BatchSummary, translate_files, translate_source
from .discovery import DiscoveryConfig, iter_discovered_files
from .errors import TranslationError
from .normalize import normalize

logger = logging.getLogger(__name__)


def run_on_path(
    root: Path,
    *,
    out_dir: Path,
    discovery: Optional[DiscoveryConfig] = None,
    batch: Optional[BatchConfig] = None,
    run_meta: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Web-safe entry an HTTP handler can call.

    - Runs discovery → translation → publishes artifacts atomically in out_dir.
    - Returns a JSON-serializable dict with summary + receipt.
    """
    root = Path(root)
    out_dir = Path(out_dir)
    sink = AnomalySink()
    files = list(iter_discovered_files(root, discovery or DiscoveryConfig(), sink))
    discovery_counters = sink.counters()

    summary = translate_files(
        files,
        out_dir,
        cfg=batch or BatchConfig(),
        run_metadata=dict(run_meta or {}),
        anomaly_sink=sink,
    )

    return {
        "summary": _summary_to_dict(summary),
        "out_dir": str(out_dir),
        "receipt_path": str(out_dir / "run_receipt.json"),
        "receipt": load_receipt(out_dir),
        "discovery_counters": discovery_counters,
    }


def load_receipt(out_dir: Path) -> Dict[str, Any]:
    """Re-read a published run receipt; {} when absent or unreadable."""
    receipt_path = Path(out_dir) / "run_receipt.json"
    if not receipt_path.exists():
        return {}
    try:
        return json.loads(receipt_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("unreadable receipt %s: %s", receipt_path, e)
        return {}


# ----------------------------- CLI --------------------------------------------

def _cmd_normalize(args: argparse.Namespace) -> int:
    text = Path(args.input).read_text(encoding="utf-8")
    try:
        output = normalize(text)
    except TranslationError as e:
        print(f"{args.input}: {e.describe()}", file=sys.stderr)
        return 1
    sys.stdout.write(output)
    return 0


def _cmd_translate(args: argparse.Namespace) -> int:
    text = Path(args.input).read_text(encoding="utf-8")
    try:
        output = translate_source(text)
    except TranslationError as e:
        print(f"{args.input}: {e.describe()}", file=sys.stderr)
        return 1
    if args.output:
        Path(args.output).write_text(output, encoding="utf-8")
    else:
        sys.stdout.write(output)
    return 0


def _cmd_batch(args: argparse.Namespace) -> int:
    result = run_on_path(
        Path(args.root),
        out_dir=Path(args.out),
        batch=BatchConfig(max_workers=args.workers, per_file_timeout_sec=args.timeout),
    )
    print(json.dumps(result["summary"], indent=2))
    return 0 if result["summary"]["files_failed"] == 0 else 2


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="groovy2cs",
        description="Translate Groovy scripts to C#",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0, help="more logging (-vv for debug)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    p = subparsers.add_parser("normalize", help="insert statement terminators and print the result")
    p.add_argument("input", help="Groovy source file")
    p.set_defaults(func=_cmd_normalize)

    p = subparsers.add_parser("translate", help="translate one file to C#")
    p.add_argument("input", help="Groovy source file")
    p.add_argument("-o", "--output", help="output .cs file (default: stdout)")
    p.set_defaults(func=_cmd_translate)

    p = subparsers.add_parser("batch", help="translate every Groovy file under a directory")
    p.add_argument("root", help="source directory")
    p.add_argument("--out", required=True, help="output directory (replaced atomically)")
    p.add_argument("--workers", type=int, default=4)
    p.add_argument("--timeout", type=float, default=8.0, help="per-file timeout in seconds")
    p.set_defaults(func=_cmd_batch)

    args = parser.parse_args(argv)
    level = logging.WARNING if args.verbose == 0 else logging.INFO if args.verbose == 1 else logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    return args.func(args)


# ----------------------------- helpers ----------------------------------------

def _summary_to_dict(s: BatchSummary) -> Dict[str, Any]:
    return {
        "files_total": s.files_total,
        "files_translated": s.files_translated,
        "files_failed": s.files_failed,
        "translation_rows": s.translation_rows,
        "anomalies": s.anomalies,
        "wall_ms": s.wall_ms,
    }


if __name__ == "__main__":
    sys.exit(main())
