"""
Drifters push safety checks.

Before a local file replaces this machine's pushed copy, preflight checks
look for signs that the local file was truncated or emptied by accident.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from drifters.core.logging import get_logger

logger = get_logger(__name__)

EMPTY_FILE_THRESHOLD = 10  # bytes
SIZE_RATIO_WARNING = 10.0  # warn when the local file is this many times smaller


@dataclass
class PreflightCheck:
    """Result of a single preflight check."""

    name: str
    passed: bool
    message: str
    severity: str = "info"  # info, warning, error


@dataclass
class PreflightReport:
    """Complete preflight check report."""

    checks: list[PreflightCheck] = field(default_factory=list)

    @property
    def all_passed(self) -> bool:
        return all(c.passed for c in self.checks)

    def failures(self) -> list[PreflightCheck]:
        return [c for c in self.checks if not c.passed]


PreflightFunc = Callable[[dict[str, Any]], PreflightCheck]


class PreflightChecker:
    """Runs preflight checks over a context dict."""

    def __init__(self) -> None:
        self._checks: list[tuple[str, PreflightFunc]] = []

    def add_check(self, name: str, check_func: PreflightFunc) -> None:
        self._checks.append((name, check_func))

    def run_checks(self, context: dict[str, Any]) -> PreflightReport:
        report = PreflightReport()

        for name, check_func in self._checks:
            try:
                report.checks.append(check_func(context))
            except OSError as e:
                report.checks.append(
                    PreflightCheck(
                        name=name,
                        passed=False,
                        message=f"Check failed with error: {e}",
                        severity="error",
                    )
                )

        return report


def check_not_emptied(context: dict[str, Any]) -> PreflightCheck:
    """Flag a near-empty local file that would replace a non-empty copy."""
    local_size: int = context["local_size"]
    stored_size: int | None = context.get("stored_size")

    if (
        local_size < EMPTY_FILE_THRESHOLD
        and stored_size is not None
        and stored_size > EMPTY_FILE_THRESHOLD
    ):
        return PreflightCheck(
            name="Empty File",
            passed=False,
            message=f"Local file is {local_size} bytes but the pushed copy is {stored_size} bytes",
            severity="warning",
        )

    return PreflightCheck(name="Empty File", passed=True, message="Local file has content")


def check_size_ratio(context: dict[str, Any]) -> PreflightCheck:
    """Flag a local file much smaller than its pushed copy."""
    local_size: int = context["local_size"]
    stored_size: int | None = context.get("stored_size")

    if stored_size and local_size > 0:
        ratio = stored_size / local_size
        if ratio > SIZE_RATIO_WARNING:
            return PreflightCheck(
                name="Size Ratio",
                passed=False,
                message=f"Local file is {ratio:.1f}x smaller than the pushed copy",
                severity="warning",
            )

    return PreflightCheck(name="Size Ratio", passed=True, message="Size is consistent")


def create_push_preflight_checker() -> PreflightChecker:
    checker = PreflightChecker()
    checker.add_check("Empty File", check_not_emptied)
    checker.add_check("Size Ratio", check_size_ratio)
    return checker


def check_push_safety(local_path: Path, stored_path: Path) -> PreflightReport:
    """Compare a local file with its previously pushed copy."""
    context: dict[str, Any] = {
        "local_size": local_path.stat().st_size,
        "stored_size": stored_path.stat().st_size if stored_path.exists() else None,
    }
    report = create_push_preflight_checker().run_checks(context)

    for failure in report.failures():
        logger.warning(
            "Push preflight check failed",
            path=str(local_path),
            check=failure.name,
            message=failure.message,
            severity=failure.severity,
        )
    return report
