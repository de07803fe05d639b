"""Review pipeline.

This module exposes the end-to-end entry points around the pure core:
  - load_datasets(clients=..., workers=..., tasks=...): read + normalize files
  - review(datasets, rules): validate and index the findings
  - add_rules_from_text(text, datasets, rules): parse text and merge the rules
  - export_package(datasets, policy, out_dir): write the cleaned package,
    refused while errors remain unless forced
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Sequence, Union

import dataalchemist.state as state
from dataalchemist.diagnostics import ErrorIndex, Summary, build_index, has_blocking, summarize
from dataalchemist.io.export import write_package
from dataalchemist.io.policy import load_policy
from dataalchemist.io.tables import read_rows
from dataalchemist.log import get_logger
from dataalchemist.normalize import normalize_rows
from dataalchemist.policy import Policy
from dataalchemist.rules.base import Rule
from dataalchemist.rules.text import parse_rules_from_text
from dataalchemist.validation import validate

logger = get_logger(__name__)

PathLike = Union[str, Path]


class ExportBlockedError(RuntimeError):
    """Raised when exporting a package that still has error diagnostics."""

    def __init__(self, errors: Sequence[state.Diagnostic]):
        self.errors = tuple(errors)
        super().__init__(
            f"Export blocked by {len(self.errors)} validation error(s); "
            "fix them or export with force=True"
        )


@dataclass(frozen=True, slots=True)
class ReviewResult:
    diagnostics: tuple[state.Diagnostic, ...]
    index: ErrorIndex
    summary: Summary

    @property
    def exportable(self) -> bool:
        return not has_blocking(self.diagnostics)


@dataclass(frozen=True, slots=True)
class TextRulesResult:
    rules: tuple[Rule, ...]
    added: tuple[Rule, ...]
    notes: tuple[str, ...]


def load_datasets(
    *,
    clients: Optional[PathLike] = None,
    workers: Optional[PathLike] = None,
    tasks: Optional[PathLike] = None,
    headers: Optional[Mapping[str, Mapping[str, str]]] = None,
) -> state.Datasets:
    """Read each given file and normalize it; missing files give empty collections."""
    headers = headers or {}
    loaded = {}
    for entity, path in (("clients", clients), ("workers", workers), ("tasks", tasks)):
        if path is None:
            loaded[entity] = ()
            continue
        loaded[entity] = normalize_rows(entity, read_rows(path), headers.get(entity))
    return state.Datasets(**loaded)


def review(datasets: state.Datasets, rules: Sequence[Rule] = ()) -> ReviewResult:
    diagnostics = validate(datasets, rules)
    summary = summarize(diagnostics)
    logger.info(
        "Review: %d error(s), %d warning(s)", summary.errors, summary.warnings
    )
    return ReviewResult(
        diagnostics=tuple(diagnostics),
        index=build_index(diagnostics),
        summary=summary,
    )


def add_rules_from_text(
    text: str, datasets: state.Datasets, rules: Sequence[Rule] = ()
) -> TextRulesResult:
    """Parse `text` and append the candidate rules to `rules`.

    Rules equal to one already in the list are not added twice.
    """
    parsed = parse_rules_from_text(text, datasets)
    merged = list(rules)
    added = []
    for rule in parsed.rules:
        if rule not in merged:
            merged.append(rule)
            added.append(rule)
    return TextRulesResult(rules=tuple(merged), added=tuple(added), notes=parsed.notes)


def export_package(
    datasets: state.Datasets,
    policy: Policy,
    out_dir: PathLike,
    *,
    force: bool = False,
    workbook: bool = False,
) -> dict[str, Path]:
    """Validate, then write the cleaned tables and rules.json to `out_dir`."""
    result = review(datasets, policy.rules)
    if not result.exportable:
        errors = [d for d in result.diagnostics if d.severity == "error"]
        if not force:
            raise ExportBlockedError(errors)
        logger.warning("Exporting with %d unresolved error(s)", len(errors))
    return write_package(datasets, policy, out_dir, workbook=workbook)


def review_files(
    *,
    clients: Optional[PathLike] = None,
    workers: Optional[PathLike] = None,
    tasks: Optional[PathLike] = None,
    policy_path: Optional[PathLike] = None,
) -> tuple[state.Datasets, Policy, ReviewResult]:
    """Load files and an optional YAML policy, then review them."""
    policy = Policy()
    headers: Mapping[str, Mapping[str, str]] = {}
    if policy_path is not None:
        loaded = load_policy(str(policy_path))
        policy, headers = loaded.policy, loaded.headers

    datasets = load_datasets(clients=clients, workers=workers, tasks=tasks, headers=headers)
    return datasets, policy, review(datasets, policy.rules)
