"""kzgfuzz CLI: differential fuzzing of EIP-4844 KZG implementations.

Usage:
    kzgfuzz targets                         List fuzz targets
    kzgfuzz replay <target> <path>...       Re-run corpus files through a target
    kzgfuzz fuzz <target> [libFuzzer args]  Fuzz a target under Atheris
    kzgfuzz gen-setup <path>                Write an INSECURE development setup
    kzgfuzz config                          Show current configuration

Examples:
    kzgfuzz gen-setup dev_setup.txt --size 4 --secret 1337
    KZGFUZZ_IMPLEMENTATION_A=reference KZGFUZZ_IMPLEMENTATION_B=reference \\
        KZGFUZZ_TRUSTED_SETUP_PATH=dev_setup.txt kzgfuzz replay verify_kzg_proof corpus/
    kzgfuzz fuzz blob_to_kzg_commitment corpus/ -max_total_time=600
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from kzgfuzz.core.config import Settings, get_settings
from kzgfuzz.core.errors import Inequivalence, KzgFuzzError, SetupError
from kzgfuzz.core.logging import TargetLogFilter, setup_logging
from kzgfuzz.core.types import CaseStatus

__version__ = "0.1.0"

logger = logging.getLogger(__name__)


# ── Coloured output helpers ──────────────────────────────────────────────────

_RESET = "\033[0m"
_BOLD = "\033[1m"
_RED = "\033[91m"
_YELLOW = "\033[93m"
_GREEN = "\033[92m"
_CYAN = "\033[96m"
_DIM = "\033[2m"

_STATUS_COLOR = {
    CaseStatus.PASSED.value: _GREEN,
    CaseStatus.SKIPPED.value: _DIM,
    CaseStatus.FAILED.value: _RED,
}


def _c(text: str, code: str) -> str:
    return f"{code}{text}{_RESET}"


# ── CLI argument parser ─────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kzgfuzz",
        description="kzgfuzz: differential fuzzer for EIP-4844 KZG libraries",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="store_true", help="Print version and exit")
    parser.add_argument("--quiet", "-q", action="store_true", help="Minimal output")
    parser.add_argument("--log-level", help="Override KZGFUZZ_LOG_LEVEL")

    sub = parser.add_subparsers(dest="command")

    # ── targets ──────────────────────────────────────────────────────────────
    sub.add_parser("targets", help="List fuzz targets")

    # ── replay ───────────────────────────────────────────────────────────────
    replay_p = sub.add_parser("replay", help="Re-run corpus or crash files through a target")
    replay_p.add_argument("target", help="Fuzz target name (see `kzgfuzz targets`)")
    replay_p.add_argument("paths", nargs="+", help="Input files or corpus directories")
    replay_p.add_argument(
        "--format",
        "-f",
        default="table",
        choices=["table", "json"],
        help="Output format (default: table)",
    )
    replay_p.add_argument("--output", "-o", help="Write output to file instead of stdout")

    # ── fuzz ─────────────────────────────────────────────────────────────────
    fuzz_p = sub.add_parser("fuzz", help="Fuzz a target under Atheris/libFuzzer")
    fuzz_p.add_argument("target", help="Fuzz target name (see `kzgfuzz targets`)")
    fuzz_p.add_argument(
        "libfuzzer_args",
        nargs=argparse.REMAINDER,
        help="Corpus directories and libFuzzer flags, passed through unchanged",
    )

    # ── gen-setup ────────────────────────────────────────────────────────────
    setup_p = sub.add_parser("gen-setup", help="Write an INSECURE trusted setup for development")
    setup_p.add_argument("path", help="Destination file")
    setup_p.add_argument("--size", type=int, default=4, help="G1 points (power of two, default: 4)")
    setup_p.add_argument("--secret", type=int, default=1337, help="Known secret (default: 1337)")
    setup_p.add_argument("--g2-size", type=int, default=2, help="G2 points (default: 2)")

    # ── config ───────────────────────────────────────────────────────────────
    sub.add_parser("config", help="Show current configuration")

    return parser


# ── Targets command ──────────────────────────────────────────────────────────


def _run_targets() -> int:
    from kzgfuzz.fuzzer.targets import TARGETS

    print(f"\n{_BOLD}Fuzz targets{_RESET}\n")
    for name in sorted(TARGETS):
        print(f"  {_c(f'{name:<30}', _CYAN)} {_DIM}{TARGETS[name].description}{_RESET}")
    print()
    return 0


# ── Replay command ───────────────────────────────────────────────────────────


@dataclass
class ReplaySummary:
    """Aggregate of one replay run."""

    target: str
    total: int = 0
    passed: int = 0
    skipped: int = 0
    failed: int = 0
    findings: list[dict[str, Any]] = field(default_factory=list)

    def record(self, status: CaseStatus) -> None:
        self.total += 1
        if status is CaseStatus.PASSED:
            self.passed += 1
        elif status is CaseStatus.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "target": self.target,
            "total": self.total,
            "passed": self.passed,
            "skipped": self.skipped,
            "failed": self.failed,
            "findings": self.findings,
        }


def _collect_inputs(paths: list[str]) -> list[Path]:
    files: list[Path] = []
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            files.extend(sorted(p for p in path.rglob("*") if p.is_file()))
        elif path.is_file():
            files.append(path)
        else:
            raise FileNotFoundError(f"path '{path}' does not exist")
    return files


def replay(target_name: str, files: list[Path], settings: Settings) -> ReplaySummary:
    """Run every file through ``target_name`` inside one harness context."""
    from kzgfuzz.fuzzer.harness import open_context
    from kzgfuzz.fuzzer.targets import get_target, run_case

    target = get_target(target_name)
    summary = ReplaySummary(target=target.name)

    with open_context(settings) as ctx:
        for path in files:
            data = path.read_bytes()
            try:
                result = run_case(target, data, ctx)
            except Inequivalence as exc:
                summary.record(CaseStatus.FAILED)
                if len(summary.findings) < settings.replay_max_findings:
                    summary.findings.append({"file": str(path), **exc.to_dict()})
                continue
            summary.record(result.status)
    return summary


def _print_summary(summary: ReplaySummary, quiet: bool = False) -> None:
    if not quiet:
        print(f"\n{_BOLD}Replay complete{_RESET} · {summary.target}")
        print(
            f"  Inputs: {summary.total}"
            f"  |  {_c(f'{summary.passed} passed', _GREEN)}"
            f"  |  {_c(f'{summary.skipped} skipped', _DIM)}"
            f"  |  {_c(f'{summary.failed} failed', _RED if summary.failed else _DIM)}\n"
        )

    if not summary.findings:
        print(_c("  ✓ All implementations agree.", _GREEN))
        return

    for i, finding in enumerate(summary.findings, 1):
        badge = _c(f" {finding['diff_type'].upper()} ", _RED + _BOLD)
        print(f"  {_DIM}{i:>3}.{_RESET} {badge} {_c(finding['file'], _BOLD)}")
        print(f"       {_DIM}{finding['message']}{_RESET}")
        for outcome in finding["outcomes"]:
            state = "ok" if outcome["success"] else f"error: {outcome['error']}"
            print(f"       {_DIM}{outcome['implementation']}: {state} {outcome['output'][:32]}{_RESET}")
        print()


def _run_replay(args: argparse.Namespace, settings: Settings) -> int:
    try:
        files = _collect_inputs(args.paths)
    except FileNotFoundError as exc:
        print(_c(f"Error: {exc}", _RED), file=sys.stderr)
        return 1
    if not files:
        print(_c("Error: no input files found.", _RED), file=sys.stderr)
        return 1

    _attach_target_filter(args.target)
    try:
        summary = replay(args.target, files, settings)
    except KzgFuzzError as exc:
        print(_c(f"Error: {exc.message}", _RED), file=sys.stderr)
        return 1

    if args.format == "json":
        output = json.dumps(summary.to_dict(), indent=2)
        if args.output:
            Path(args.output).write_text(output)
            if not args.quiet:
                print(f"  Written to {_c(args.output, _CYAN)}")
        else:
            print(output)
    else:
        _print_summary(summary, quiet=args.quiet)

    return 1 if summary.failed else 0


# ── Fuzz command ─────────────────────────────────────────────────────────────


def _run_fuzz(args: argparse.Namespace, settings: Settings) -> int:
    try:
        import atheris
    except ImportError:
        print(
            _c("Error: atheris is not installed. Install with: pip install 'kzgfuzz[fuzz]'", _RED),
            file=sys.stderr,
        )
        return 2

    from kzgfuzz.fuzzer.harness import open_context
    from kzgfuzz.fuzzer.targets import get_target, run_case

    # Cursor, generators and oracle are already loaded; instrument them for coverage.
    atheris.instrument_all()

    try:
        target = get_target(args.target)
    except KzgFuzzError as exc:
        print(_c(f"Error: {exc.message}", _RED), file=sys.stderr)
        return 1

    _attach_target_filter(target.name)
    try:
        with open_context(settings) as ctx:

            def test_one_input(data: bytes) -> None:
                run_case(target, data, ctx)

            # Atheris expects argv-like list: [prog, <corpus/flags...>]
            atheris.Setup([sys.argv[0], *args.libfuzzer_args], test_one_input)
            atheris.Fuzz()
    except SetupError as exc:
        print(_c(f"Error: {exc.message}", _RED), file=sys.stderr)
        return 1
    return 0


# ── Gen-setup command ────────────────────────────────────────────────────────


def _run_gen_setup(args: argparse.Namespace) -> int:
    from kzgfuzz.backends.trusted_setup import write_insecure_setup

    try:
        setup = write_insecure_setup(args.path, args.secret, args.size, args.g2_size)
    except ValueError as exc:
        print(_c(f"Error: {exc}", _RED), file=sys.stderr)
        return 1
    if not args.quiet:
        print(
            f"  Wrote {_c(str(setup.field_elements_per_blob), _CYAN)} G1 / "
            f"{_c(str(len(setup.g2_monomial)), _CYAN)} G2 points to {args.path}"
        )
        print(_c("  INSECURE: the secret is known. Development use only.", _YELLOW))
    return 0


# ── Config command ───────────────────────────────────────────────────────────


def _run_config(settings: Settings) -> int:
    """Print current settings."""
    print(f"\n{_BOLD}kzgfuzz Configuration{_RESET}\n")
    for field_name in sorted(Settings.model_fields.keys()):
        val = getattr(settings, field_name, "")
        if hasattr(val, "value"):
            val = val.value
        print(f"  {_DIM}{field_name}:{_RESET}  {val}")
    print()
    if "reference" in (settings.implementation_a, settings.implementation_b):
        print(
            _c(
                "  Note: the pure-Python reference is slow on the 4096-point production setup. "
                "For throughput, write a small setup with `kzgfuzz gen-setup dev_setup.txt` "
                "and set KZGFUZZ_TRUSTED_SETUP_PATH=dev_setup.txt.",
                _YELLOW,
            )
        )
        print()
    return 0


# ── Entrypoint ───────────────────────────────────────────────────────────────


def _attach_target_filter(target: str) -> None:
    for handler in logging.getLogger().handlers:
        handler.addFilter(TargetLogFilter(target))


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"kzgfuzz {__version__}")
        return 0

    if not args.command:
        parser.print_help()
        return 0

    settings = get_settings()
    setup_logging(settings.app_env, args.log_level or settings.log_level)

    if args.command == "targets":
        return _run_targets()

    if args.command == "replay":
        return _run_replay(args, settings)

    if args.command == "fuzz":
        return _run_fuzz(args, settings)

    if args.command == "gen-setup":
        return _run_gen_setup(args)

    if args.command == "config":
        return _run_config(settings)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
