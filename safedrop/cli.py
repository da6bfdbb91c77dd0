#!/usr/bin/env python3
"""
SafeDrop CLI - invalid deallocation detection for Rust MIR.

Commands:
- scan: Analyze JSON MIR dumps for use-after-free and double free
- cfg: Show the block graph and loop contraction of one function

Usage:
    safedrop scan crate.mir.json                     # Scan one dump
    safedrop scan dumps/ --format sarif -o out.sarif # Scan a directory
    safedrop cfg crate.mir.json --function main      # Inspect a CFG
"""

import argparse
import sys
import json
from pathlib import Path
from typing import List

# Import version from main package (single source of truth)
from safedrop import __version__
from safedrop.mir.frontends import MirParseError, load_file
from safedrop.mir.analyzers.engine import AnalysisConfig
from safedrop.mir.analyzers.graph import build_graph, UnsupportedBodyError
from safedrop.mir.analyzers.scc import contract_cycles
from safedrop.mir.scanner import DropScanner, ScanResult, Severity


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser"""
    parser = argparse.ArgumentParser(
        prog="safedrop",
        description="SafeDrop - use-after-free and double free detection on Rust MIR",
        epilog="Use 'safedrop <command> --help' for more information on a specific command.",
    )

    parser.add_argument(
        "-V", "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # === SCAN command ===
    scan_parser = subparsers.add_parser(
        "scan",
        help="Scan MIR dumps for invalid deallocation",
        description="Analyze every function of a JSON MIR dump with path-sensitive alias analysis."
    )
    scan_parser.add_argument(
        "target",
        help="Dump file or directory to scan"
    )
    scan_parser.add_argument(
        "-p", "--pattern",
        default="**/*.json",
        help="Glob pattern for directory scan (default: **/*.json)"
    )
    scan_parser.add_argument(
        "-f", "--format",
        default="text",
        choices=["text", "json", "sarif"],
        help="Output format (default: text)"
    )
    scan_parser.add_argument(
        "-o", "--output",
        help="Output file (default: stdout)"
    )
    scan_parser.add_argument(
        "--visit-budget",
        type=int,
        default=AnalysisConfig.visit_budget,
        help=f"Blocks processed per function before giving up (default: {AnalysisConfig.visit_budget})"
    )
    scan_parser.add_argument(
        "--loop-unroll",
        type=int,
        default=AnalysisConfig.loop_unroll,
        help=f"Times a loop block may be entered per path (default: {AnalysisConfig.loop_unroll})"
    )
    scan_parser.add_argument(
        "--follow-unwind",
        action="store_true",
        help="Also traverse unwind (cleanup) edges"
    )
    scan_parser.add_argument(
        "-j", "--jobs",
        type=int,
        default=1,
        help="Worker threads (default: 1)"
    )
    scan_parser.add_argument(
        "--function",
        help="Only report this function (full id or trailing path)"
    )
    scan_parser.add_argument(
        "--fail-on",
        choices=["critical", "high", "any", "none"],
        default="any",
        help="Exit with error if findings of this severity exist (default: any)"
    )
    scan_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output"
    )

    # === CFG command ===
    cfg_parser = subparsers.add_parser(
        "cfg",
        help="Show blocks, successors and loop fathers of a function",
        description="Print the analysis graph of one function after cycle contraction."
    )
    cfg_parser.add_argument(
        "target",
        help="Dump file"
    )
    cfg_parser.add_argument(
        "--function",
        required=True,
        help="Function id (full id or trailing path)"
    )
    cfg_parser.add_argument(
        "-f", "--format",
        default="text",
        choices=["text", "json"],
        help="Output format (default: text)"
    )

    return parser


# ============================================================================
# SCAN Command
# ============================================================================

SEVERITY_ICONS = {
    Severity.CRITICAL: "🔴",
    Severity.HIGH: "🟠",
    Severity.MEDIUM: "🟡",
    Severity.LOW: "🔵",
}


def format_text_result(result: ScanResult) -> str:
    """Format scan result as human-readable text"""
    lines = []

    lines.append(f"\n{'='*60}")
    lines.append(f"SafeDrop Scan: {result.filename}")
    lines.append(f"{'='*60}")

    lines.append(f"\nFunctions analyzed: {result.functions_analyzed}")
    lines.append(f"Scan time: {result.scan_time_ms:.2f}ms")
    if result.cache_stats:
        stats = result.cache_stats
        lines.append(f"Summaries: {stats.get('entries', 0)} "
                     f"(hits {stats.get('hits', 0)}, misses {stats.get('misses', 0)})")

    if result.errors:
        lines.append(f"\nErrors:")
        for error in result.errors:
            lines.append(f"  ❌ {error}")

    if result.warnings:
        lines.append(f"\nWarnings:")
        for warning in result.warnings:
            lines.append(f"  ⚠️  {warning}")

    if result.findings:
        lines.append(f"\nFindings: {len(result.findings)}")
        lines.append("-" * 40)

        for i, finding in enumerate(result.findings, 1):
            icon = SEVERITY_ICONS.get(finding.severity, "⚫")
            bug = finding.bug
            lines.append(f"\n{i}. [{finding.severity.value.upper()}] {icon} {bug.kind.value}")
            lines.append(f"   Location: {bug.location}")
            lines.append(f"   Function: {bug.function}")
            lines.append(f"   Description: {bug.description}")
            lines.append(f"   CWE: {bug.cwe_id}")
            if bug.drop_loc:
                lines.append(f"   Freed at: {bug.drop_loc}")
    else:
        lines.append(f"\n✅ No invalid deallocation found!")

    lines.append(f"\n{'='*60}\n")

    return "\n".join(lines)


def format_json_result(results: List[ScanResult]) -> str:
    """Format results as JSON"""
    if len(results) == 1:
        return results[0].to_json()
    combined = {
        "files": [r.to_dict() for r in results],
        "summary": {
            "files_scanned": len(results),
            "total_findings": sum(len(r.findings) for r in results),
            "critical": sum(r.critical_count for r in results),
            "high": sum(r.high_count for r in results),
        }
    }
    return json.dumps(combined, indent=2)


def format_sarif_result(results: List[ScanResult]) -> str:
    """Format results as SARIF, combining files into one run"""
    if len(results) == 1:
        return json.dumps(results[0].to_sarif(), indent=2)

    all_results = []
    rules = {}
    for result in results:
        run = result.to_sarif()["runs"][0]
        all_results.extend(run.get("results", []))
        for rule in run["tool"]["driver"].get("rules", []):
            rules[rule["id"]] = rule

    combined = {
        "$schema": "https://raw.githubusercontent.com/oasis-tcs/sarif-spec/master/Schemata/sarif-schema-2.1.0.json",
        "version": "2.1.0",
        "runs": [{
            "tool": {
                "driver": {
                    "name": "SafeDrop",
                    "version": __version__,
                    "rules": list(rules.values()),
                }
            },
            "results": all_results,
        }]
    }
    return json.dumps(combined, indent=2)


def should_fail(results: List[ScanResult], fail_on: str) -> bool:
    """Determine if scan should fail based on findings"""
    if fail_on == "none":
        return False
    if fail_on == "any" or fail_on == "high":
        return any(r.findings for r in results)
    return any(r.critical_count for r in results)


def _write(output: str, path: str = None, append: bool = False) -> None:
    if path:
        with open(path, 'a' if append else 'w') as f:
            f.write(output)
    else:
        print(output)


def cmd_scan(args) -> int:
    """Execute scan command"""
    target = Path(args.target)

    if not target.exists():
        print(f"Error: Target not found: {args.target}", file=sys.stderr)
        return 1
    if args.visit_budget < 1 or args.loop_unroll < 1 or args.jobs < 1:
        print("Error: --visit-budget, --loop-unroll and --jobs must be positive",
              file=sys.stderr)
        return 1

    config = AnalysisConfig(
        visit_budget=args.visit_budget,
        loop_unroll=args.loop_unroll,
        follow_unwind=args.follow_unwind,
    )
    scanner = DropScanner(
        config=config,
        jobs=args.jobs,
        verbose=args.verbose,
        function_filter=args.function,
    )

    if target.is_file():
        results = [scanner.scan_file(str(target))]
    else:
        results = scanner.scan_directory(str(target), args.pattern)

    if not results:
        print("No files found to scan.", file=sys.stderr)
        return 1

    for result in results:
        for error in result.errors:
            print(f"Error: {result.filename}: {error}", file=sys.stderr)

    if args.format == "text":
        if args.output:
            Path(args.output).write_text("")
        for result in results:
            _write(format_text_result(result), args.output, append=True)
    elif args.format == "json":
        _write(format_json_result(results), args.output)
    elif args.format == "sarif":
        _write(format_sarif_result(results), args.output)

    if should_fail(results, args.fail_on):
        return 1
    if all(r.errors and not r.reports for r in results):
        return 2
    return 0


# ============================================================================
# CFG Command
# ============================================================================

def cmd_cfg(args) -> int:
    """Execute cfg command"""
    try:
        program = load_file(args.target)
    except (OSError, MirParseError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    candidates = [n for n in program.function_ids()
                  if n == args.function or n.endswith("::" + args.function)]
    if not candidates:
        print(f"Error: Function not found: {args.function}", file=sys.stderr)
        return 1

    name = candidates[0]
    try:
        graph = build_graph(program.get_body(name))
    except UnsupportedBodyError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    scc = contract_cycles(graph)

    if args.format == "json":
        data = {
            "function": name,
            "entry": graph.entry,
            "blocks": [{
                "id": bid,
                "successors": graph.blocks[bid].succs,
                "unwind": graph.blocks[bid].unwind_succs,
                "father": scc.father(bid),
                "cyclic": scc.in_cycle(bid),
            } for bid in graph.block_ids()],
            "acyclic_condensation": scc.is_acyclic(),
        }
        print(json.dumps(data, indent=2))
        return 0

    print(f"fn {name} (entry bb{graph.entry}, {len(graph.nodes)} nodes)")
    for bid in graph.block_ids():
        block = graph.blocks[bid]
        marker = " [loop]" if scc.in_cycle(bid) else ""
        print(f"  {block}  father bb{scc.father(bid)}{marker}")
    return 0


# ============================================================================
# Main Entry Point
# ============================================================================

def main(argv: List[str] = None) -> int:
    """Main CLI entry point"""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    commands = {
        "scan": cmd_scan,
        "cfg": cmd_cfg,
    }

    handler = commands.get(args.command)
    if handler:
        return handler(args)
    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
