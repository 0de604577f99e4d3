"""Audit orchestrator: acquire inputs, flatten, compare, label, render."""

from __future__ import annotations

import os
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

from rich.console import Console

from .. import __version__
from ..client.graph import GraphClient
from ..errors import CatalogUnavailableError, GraphRequestError
from ..formatters.junit import export_junit_results
from ..formatters.markdown import generate_markdown_report
from ..formatters.tabular import export_csv_report, export_json_report
from ..models.run import LoadedUnit, UnitKind, UnitOutcome
from .baselines import load_baseline_bundle
from .catalog import catalog_cache_age_days, invalidate_catalog_cache, load_catalog
from .compare import compare, merge_flattened
from .config import CONFIG_DIR, get_effective_config
from .flatten import COLLECTION_KEYS_INDEXED, COLLECTION_KEYS_SHARED, flatten_raw
from .policies import export_policies, fetch_remote_policies, get_policy_type, load_policy_exports
from .report import build_report_rows
from .resolve import resolve_description, resolve_label
from .session import AuditSession

console = Console()

EXIT_BAD_ARGS = 11
EXIT_CATALOG_UNAVAILABLE = 13
EXIT_POLICIES_UNAVAILABLE = 14

REPORT_SUFFIXES = {"markdown": ".md", "csv": ".csv", "json": ".json", "junit": ".xml"}


def _build_overrides(
    policy_type: Optional[str],
    collection_keys: Optional[str],
    graph_base_url: Optional[str],
    output_format: Optional[str],
) -> dict:
    overrides: dict = {}
    if policy_type:
        overrides.setdefault("audit", {})["policy_type"] = policy_type
    if collection_keys:
        overrides.setdefault("audit", {})["collection_keys"] = collection_keys
    if graph_base_url:
        overrides.setdefault("graph", {})["base_url"] = graph_base_url
    if output_format:
        overrides.setdefault("output", {})["format"] = output_format
    return overrides


def _report_outcomes(outcomes: list[UnitOutcome[LoadedUnit]]) -> None:
    for outcome in outcomes:
        if outcome.ok and outcome.value is not None:
            count = len(outcome.value.settings)
            console.print(f"  [green]OK[/green] {outcome.kind.value}: {outcome.name} ({count} settings)")
        else:
            console.print(f"  [yellow]WARN[/yellow] Skipped {outcome.kind.value} {outcome.name}: {outcome.error}")


def _default_report_path(project_path: Path, output_format: str) -> Path:
    stamp = datetime.now().strftime("%Y%m%dT%H%M%S")
    suffix = REPORT_SUFFIXES.get(output_format, ".md")
    return project_path / CONFIG_DIR / "reports" / f"baseline-comparison-{stamp}{suffix}"


async def _prepare_catalog(
    session: AuditSession,
    client: Optional[GraphClient],
    refresh: bool = False,
) -> bool:
    """Load the catalog into the session. Returns False when it is unavailable."""
    try:
        session.catalog, source = await load_catalog(session, client, refresh=refresh)
    except CatalogUnavailableError as e:
        session.skip(UnitKind.CATALOG, "catalog", str(e), fatal=True)
        console.print(f"  [red]ERROR[/red] Reference catalog unavailable: {session.fatal.reason}")
        return False

    console.print(f"  [green]OK[/green] Catalog: {len(session.catalog)} entries ({source})")

    if source == "cache":
        age = catalog_cache_age_days(session.catalog_cache_path)
        max_age = int((session.config.get("catalog") or {}).get("max_age_days", 30))
        if age is not None and age > max_age:
            console.print(
                f"  [yellow]WARN[/yellow] Catalog cache is {age} days old. "
                f"Run: fleetaudit catalog refresh"
            )
    return True


async def run_audit(
    project_path: Path,
    baselines: list[Path],
    policies_path: Optional[Path] = None,
    policy_names: Optional[list[str]] = None,
    output_format: Optional[str] = None,
    output_path: Optional[Path] = None,
    ci: bool = False,
    policy_type: Optional[str] = None,
    collection_keys: Optional[str] = None,
    graph_base_url: Optional[str] = None,
    refresh_catalog: bool = False,
) -> int:
    """Main audit orchestrator. Returns exit code."""
    start_time = time.time()
    project_path = Path(project_path).resolve()

    is_ci = ci or bool(os.environ.get("GITHUB_ACTIONS") or os.environ.get("TF_BUILD"))

    config = get_effective_config(
        project_path,
        cli_overrides=_build_overrides(policy_type, collection_keys, graph_base_url, output_format) or None,
    )
    session = AuditSession.from_config(config)
    output_config = config.get("output") or {}
    fmt = output_config.get("format", "markdown")

    # Project config supplies the policy selection and report path when the CLI does not
    policy_names = list(policy_names or session.policies) or None
    if output_path is None and output_config.get("path"):
        output_path = Path(str(output_config["path"])).expanduser()
        if not output_path.is_absolute():
            output_path = project_path / output_path

    if not baselines:
        console.print("  [red]ERROR[/red] At least one baseline bundle is required")
        return EXIT_BAD_ARGS
    try:
        selected_type = get_policy_type(session.policy_type)
    except ValueError as e:
        console.print(f"  [red]ERROR[/red] {e}")
        return EXIT_BAD_ARGS
    if session.collection_keys not in (COLLECTION_KEYS_INDEXED, COLLECTION_KEYS_SHARED):
        console.print(f"  [red]ERROR[/red] Unknown collection key scheme: {session.collection_keys}")
        return EXIT_BAD_ARGS
    if fmt not in REPORT_SUFFIXES:
        console.print(f"  [red]ERROR[/red] Unknown output format: {fmt}")
        return EXIT_BAD_ARGS

    # Banner
    console.print()
    console.print(f"  [bold cyan]FLEETAUDIT[/bold cyan] v{__version__}")
    console.print(f"  Baselines:   [white]{', '.join(b.name for b in baselines)}[/white]")
    console.print(f"  Policies:    [white]{policies_path or selected_type.label}[/white]")
    console.print(f"  Policy type: [white]{selected_type.key}[/white]")
    console.print()

    client = GraphClient(config.get("graph") or {})

    # Catalog first: nothing is labelled without it
    console.print("  [cyan]Loading reference catalog...[/cyan]")
    if not await _prepare_catalog(session, client, refresh=refresh_catalog):
        return EXIT_CATALOG_UNAVAILABLE

    # Expected side
    console.print("\n  [cyan]Loading baselines...[/cyan]")
    baseline_outcomes: list[UnitOutcome[LoadedUnit]] = []
    for bundle in baselines:
        baseline_outcomes.extend(load_baseline_bundle(Path(bundle)))
    _report_outcomes(baseline_outcomes)
    baseline_units: list[LoadedUnit] = session.collect(baseline_outcomes)

    # Actual side
    console.print("\n  [cyan]Loading policies...[/cyan]")
    if policies_path:
        policy_outcomes = load_policy_exports(Path(policies_path), policy_names)
    else:
        try:
            policy_outcomes = await fetch_remote_policies(client, selected_type, policy_names)
        except GraphRequestError as e:
            session.skip(UnitKind.POLICY, "policy list", str(e), fatal=True)
            console.print(f"  [red]ERROR[/red] Could not list policies: {session.fatal.reason}")
            return EXIT_POLICIES_UNAVAILABLE
    _report_outcomes(policy_outcomes)
    policy_units: list[LoadedUnit] = session.collect(policy_outcomes)

    if not baseline_units:
        console.print("  [yellow]WARN[/yellow] No baseline settings loaded; every configured setting is extra")
    if not policy_units:
        console.print("  [yellow]WARN[/yellow] No policies loaded; every baseline setting is missing")

    # Flatten and compare
    expected = merge_flattened(*(
        flatten_raw(unit.owner_id, unit.settings, session.collection_keys) for unit in baseline_units
    ))
    actual = merge_flattened(*(
        flatten_raw(unit.owner_id, unit.settings, session.collection_keys) for unit in policy_units
    ))
    report = compare(expected, actual)
    tables = build_report_rows(report, session.catalog)
    summary = report.summary

    console.print(
        f"\n  [green]OK[/green] Compared {summary.total} baseline settings: "
        f"{summary.matches} match, {summary.differs} differ, {summary.missing} missing, "
        f"{summary.extra} extra"
    )

    # Render
    duration = time.time() - start_time
    baseline_names = sorted({u.owner_id for u in baseline_units})
    policy_names_loaded = [u.owner_id for u in policy_units]

    if fmt == "markdown":
        markdown = generate_markdown_report(
            tables,
            baselines=baseline_names,
            policies=policy_names_loaded,
            skipped=session.skipped,
            duration_seconds=duration,
        )
        if output_path:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_text(markdown, encoding="utf-8")
            console.print(f"  Report: {output_path}")
        else:
            console.print()
            # soft_wrap keeps table rows on one line when stdout is not a terminal
            console.print(markdown, markup=False, highlight=False, emoji=False, soft_wrap=True)
    else:
        target = output_path or _default_report_path(project_path, fmt)
        if fmt == "csv":
            written = export_csv_report(tables, target)
            console.print(f"  Report: {', '.join(str(p) for p in written)}")
        elif fmt == "json":
            export_json_report(report, tables, target, skipped=session.skipped)
            console.print(f"  Report: {target}")
        else:
            junit = export_junit_results(tables, target, duration=duration)
            console.print(
                f"  [green]OK[/green] JUnit XML: {junit['total_tests']} tests, "
                f"{junit['failures']} failures"
            )
            console.print(f"  Report: {target}")

    if session.skipped:
        console.print(f"  [yellow]WARN[/yellow] {len(session.skipped)} input(s) skipped")

    exit_codes = (config.get("ci") or {}).get("exit_codes") or {}
    if summary.has_drift:
        console.print("\n  [yellow]Drift detected[/yellow]")
        exit_code = int(exit_codes.get("drift", 1))
    else:
        console.print("\n  [green]No drift[/green]")
        exit_code = int(exit_codes.get("clean", 0))
    console.print()

    if is_ci:
        console.print(f"  CI Mode: Exiting with code {exit_code}")

    return exit_code


async def pull_policies(
    project_path: Path,
    output_dir: Path,
    policy_names: Optional[list[str]] = None,
    policy_type: Optional[str] = None,
) -> int:
    """Fetch policies from the service and save them as offline exports."""
    config = get_effective_config(
        Path(project_path).resolve(),
        cli_overrides=_build_overrides(policy_type, None, None, None) or None,
    )
    session = AuditSession.from_config(config)
    try:
        selected_type = get_policy_type(session.policy_type)
    except ValueError as e:
        console.print(f"  [red]ERROR[/red] {e}")
        return EXIT_BAD_ARGS

    names = list(policy_names or session.policies) or None
    client = GraphClient(config.get("graph") or {})
    try:
        outcomes = await fetch_remote_policies(client, selected_type, names)
    except GraphRequestError as e:
        session.skip(UnitKind.POLICY, "policy list", str(e), fatal=True)
        console.print(f"  [red]ERROR[/red] Could not list policies: {session.fatal.reason}")
        return EXIT_POLICIES_UNAVAILABLE

    _report_outcomes(outcomes)
    written = export_policies(session.collect(outcomes), output_dir)
    console.print(f"  [green]OK[/green] Saved {len(written)} policies to {output_dir}")
    return 0


async def refresh_catalog(project_path: Path) -> int:
    """Force a remote catalog fetch and rewrite the cache."""
    config = get_effective_config(Path(project_path).resolve())
    session = AuditSession.from_config(config)
    client = GraphClient(config.get("graph") or {})
    if not await _prepare_catalog(session, client, refresh=True):
        return EXIT_CATALOG_UNAVAILABLE
    console.print(f"  Cache: {session.catalog_cache_path}")
    return 0


def clear_catalog(project_path: Path) -> int:
    config = get_effective_config(Path(project_path).resolve())
    session = AuditSession.from_config(config)
    if invalidate_catalog_cache(session.catalog_cache_path):
        console.print(f"  [green]OK[/green] Removed {session.catalog_cache_path}")
    else:
        console.print(f"  [dim]INFO[/dim] No catalog cache at {session.catalog_cache_path}")
    return 0


async def show_catalog_entry(project_path: Path, setting_id: str) -> int:
    """Print how one id resolves through the cached catalog."""
    config = get_effective_config(Path(project_path).resolve())
    session = AuditSession.from_config(config)
    if not await _prepare_catalog(session, None):
        return EXIT_CATALOG_UNAVAILABLE

    entry = session.catalog.get(setting_id)
    console.print(f"  Id:          {setting_id}")
    console.print(f"  Label:       {resolve_label(setting_id, session.catalog)}")
    console.print(f"  Description: {resolve_description(setting_id, session.catalog)}")
    if entry is None:
        console.print("  [yellow]WARN[/yellow] Not in catalog")
        return 0
    if entry.platform:
        console.print(f"  Platform:    {entry.platform}")
    if entry.keywords:
        console.print(f"  Keywords:    {', '.join(entry.keywords)}")
    for value_id, label in entry.value_options.items():
        console.print(f"    {value_id} -> {label}")
    return 0
