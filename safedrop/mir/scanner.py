"""
SafeDrop scanner.

High-level interface for checking MIR dumps for invalid deallocation.
Integrates the full pipeline:
    JSON dump → Frontend → Program → SafeDropAnalyzer → Report

Usage:
    from safedrop.mir.scanner import DropScanner

    scanner = DropScanner(jobs=4)
    result = scanner.scan_file("crate.mir.json")

    for finding in result.findings:
        print(f"{finding.kind.value}: {finding.description}")
        print(f"  Location: {finding.location}")
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional
import json
import time

from safedrop.mir.procedure import Program
from safedrop.mir.frontends import JsonMirFrontend, MirParseError
from safedrop.mir.analyzers.bugs import BugKind, BugRecord
from safedrop.mir.analyzers.engine import AnalysisConfig
from safedrop.mir.analyzers.safedrop import SafeDropAnalyzer
from safedrop.mir.analyzers.summary import FunctionReport, InterproceduralCache


class Severity(Enum):
    """Finding severity levels"""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


SEVERITY_MAP = {
    BugKind.DOUBLE_FREE: Severity.CRITICAL,
    BugKind.USE_AFTER_FREE: Severity.HIGH,
}


@dataclass
class Finding:
    """A reported bug with its severity"""
    bug: BugRecord
    severity: Severity

    @property
    def kind(self) -> BugKind:
        return self.bug.kind

    @property
    def function(self) -> str:
        return self.bug.function

    @property
    def location(self):
        return self.bug.location

    @property
    def description(self) -> str:
        return self.bug.description

    def __str__(self) -> str:
        return f"[{self.severity.value.upper()}] {self.bug}"

    def to_dict(self) -> dict:
        data = self.bug.to_dict()
        data["severity"] = self.severity.value
        return data


@dataclass
class ScanResult:
    """Result of scanning one MIR dump"""
    filename: str
    findings: List[Finding] = field(default_factory=list)
    reports: Dict[str, FunctionReport] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    scan_time_ms: float = 0.0
    functions_analyzed: int = 0
    cache_stats: Dict[str, int] = field(default_factory=dict)

    @property
    def has_findings(self) -> bool:
        return len(self.findings) > 0

    @property
    def critical_count(self) -> int:
        return sum(1 for f in self.findings if f.severity == Severity.CRITICAL)

    @property
    def high_count(self) -> int:
        return sum(1 for f in self.findings if f.severity == Severity.HIGH)

    @property
    def incomplete_functions(self) -> List[str]:
        return sorted(name for name, r in self.reports.items() if r.analyzed and not r.complete)

    def to_dict(self) -> dict:
        return {
            "filename": self.filename,
            "findings": [f.to_dict() for f in self.findings],
            "functions": {name: self.reports[name].to_dict() for name in sorted(self.reports)},
            "errors": self.errors,
            "warnings": self.warnings,
            "scan_time_ms": self.scan_time_ms,
            "functions_analyzed": self.functions_analyzed,
            "cache": self.cache_stats,
            "summary": {
                "total": len(self.findings),
                "critical": self.critical_count,
                "high": self.high_count,
                "incomplete": len(self.incomplete_functions),
            }
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def to_sarif(self) -> dict:
        """Convert to SARIF format for code scanning integrations"""
        rules = {}
        results = []

        for finding in self.findings:
            rule_id = f"safedrop/{finding.kind.value}"

            if rule_id not in rules:
                rules[rule_id] = {
                    "id": rule_id,
                    "name": finding.kind.value,
                    "shortDescription": {"text": finding.kind.title},
                    "defaultConfiguration": {
                        "level": self._severity_to_sarif_level(finding.severity)
                    },
                    "properties": {"cwe": finding.bug.cwe_id},
                }

            location = finding.location
            uri = location.file if not location.file.startswith("<") else self.filename
            results.append({
                "ruleId": rule_id,
                "level": self._severity_to_sarif_level(finding.severity),
                "message": {"text": f"{finding.description} in {finding.function}"},
                "locations": [{
                    "physicalLocation": {
                        "artifactLocation": {"uri": uri},
                        "region": {
                            "startLine": max(location.line, 1),
                            "startColumn": max(location.column, 1),
                        }
                    }
                }],
            })

        from safedrop import __version__
        return {
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
                "results": results,
            }]
        }

    def _severity_to_sarif_level(self, severity: Severity) -> str:
        mapping = {
            Severity.CRITICAL: "error",
            Severity.HIGH: "error",
            Severity.MEDIUM: "warning",
            Severity.LOW: "note",
        }
        return mapping.get(severity, "warning")


class DropScanner:
    """
    Runs SafeDrop over every function of a program.

    Functions are independent analysis units; with jobs > 1 they are
    dispatched to a thread pool sharing one interprocedural cache.
    """

    def __init__(
        self,
        config: Optional[AnalysisConfig] = None,
        jobs: int = 1,
        verbose: bool = False,
        function_filter: Optional[str] = None,
    ):
        """
        Initialize the scanner.

        Args:
            config: Analysis tunables (budget, loop unrolling, unwind edges)
            jobs: Number of worker threads
            verbose: Enable verbose output
            function_filter: Only report functions with this id or id suffix
        """
        self.config = config or AnalysisConfig()
        self.jobs = max(1, jobs)
        self.verbose = verbose
        self.function_filter = function_filter
        self.frontend = JsonMirFrontend()

    def _selected(self, program: Program) -> List[str]:
        names = program.function_ids()
        wanted = self.function_filter
        if not wanted:
            return names
        return [n for n in names if n == wanted or n.endswith("::" + wanted)]

    def scan(self, text: str, filename: str = "<unknown>") -> ScanResult:
        """
        Scan a JSON MIR dump given as text.

        Args:
            text: JSON document
            filename: Filename for reporting
        """
        start_time = time.time()
        try:
            if self.verbose:
                print(f"[Scanner] Parsing {filename}...")
            program = self.frontend.translate(text, filename)
        except MirParseError as e:
            result = ScanResult(filename=filename)
            result.errors.append(f"Parse error: {e}")
            result.scan_time_ms = (time.time() - start_time) * 1000
            return result

        result = self.scan_program(program, filename)
        result.scan_time_ms = (time.time() - start_time) * 1000
        return result

    def scan_program(self, program: Program, filename: str = "<program>") -> ScanResult:
        """Analyze the functions of an already loaded program."""
        start_time = time.time()
        result = ScanResult(filename=filename)
        cache = InterproceduralCache()
        analyzer = SafeDropAnalyzer(program, config=self.config, cache=cache,
                                    verbose=self.verbose)
        names = self._selected(program)

        if self.verbose:
            print(f"[Scanner] Analyzing {len(names)} function(s) with {self.jobs} worker(s)")

        reports: Dict[str, FunctionReport] = {}
        if self.jobs == 1 or len(names) <= 1:
            for name in names:
                reports[name] = analyzer.analyze_function(name)
        else:
            with ThreadPoolExecutor(max_workers=self.jobs) as executor:
                futures = {executor.submit(analyzer.analyze_function, name): name
                           for name in names}
                for future in as_completed(futures):
                    reports[futures[future]] = future.result()

        for name in sorted(reports):
            report = reports[name]
            result.reports[name] = report
            if not report.analyzed:
                result.errors.append(f"{name}: {report.error}")
                continue
            result.functions_analyzed += 1
            if not report.complete:
                result.warnings.append(
                    f"{name}: visit budget of {self.config.visit_budget} exhausted, "
                    f"findings may be incomplete")
            for bug in report.bugs:
                result.findings.append(Finding(bug=bug, severity=SEVERITY_MAP[bug.kind]))

        result.cache_stats = cache.stats()
        result.scan_time_ms = (time.time() - start_time) * 1000

        if self.verbose:
            print(f"[Scanner] Scan complete: {len(result.findings)} finding(s)")
            print(f"[Scanner] Time: {result.scan_time_ms:.2f}ms")
        return result

    def scan_file(self, filepath: str) -> ScanResult:
        """
        Scan a JSON MIR dump file.

        Args:
            filepath: Path to the dump
        """
        path = Path(filepath)

        if not path.exists():
            result = ScanResult(filename=str(path))
            result.errors.append(f"File not found: {filepath}")
            return result

        try:
            text = path.read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as e:
            result = ScanResult(filename=str(path))
            result.errors.append(f"Cannot read {filepath}: {e}")
            return result
        return self.scan(text, str(path))

    def scan_directory(self, dirpath: str, pattern: str = "**/*.json") -> List[ScanResult]:
        """
        Scan all matching dumps in a directory.

        Args:
            dirpath: Directory path
            pattern: Glob pattern for files

        Returns:
            List of ScanResult for each file
        """
        results = []
        dir_path = Path(dirpath)

        for filepath in sorted(dir_path.glob(pattern)):
            if filepath.is_file():
                results.append(self.scan_file(str(filepath)))

        return results


def scan_file(filepath: str, config: Optional[AnalysisConfig] = None, jobs: int = 1) -> ScanResult:
    """
    Convenience function to scan a dump file.

    Args:
        filepath: Path to the JSON dump
        config: Analysis tunables
        jobs: Number of worker threads

    Returns:
        ScanResult with findings
    """
    return DropScanner(config=config, jobs=jobs).scan_file(filepath)


def scan_program(program: Program, config: Optional[AnalysisConfig] = None,
                 jobs: int = 1) -> ScanResult:
    """Convenience function to scan a loaded Program."""
    return DropScanner(config=config, jobs=jobs).scan_program(program)
