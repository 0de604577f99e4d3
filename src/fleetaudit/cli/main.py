"""fleetaudit command line.

Default command compares policies against baseline bundles; subcommands manage
the project config and the reference catalog cache.
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click


def _exit(code: int, ci: bool = True) -> None:
    # Errors (>= 10) always exit non-zero; drift codes only in CI mode
    if code >= 10 or (ci and code):
        sys.exit(code)


@click.group(invoke_without_command=True)
@click.pass_context
@click.option("--project", "-p", type=click.Path(exists=True, file_okay=False), default=".", help="Project path")
@click.option("--baseline", "-b", "baselines", multiple=True, type=click.Path(), help="Baseline bundle directory (repeatable)")
@click.option("--policies", type=click.Path(), help="Offline policy export file or directory")
@click.option("--policy", "policy_names", multiple=True, help="Only compare this policy name or id (repeatable)")
@click.option("--policy-type", type=click.Choice(["settings-catalog", "endpoint-security", "security-baseline", "all"]))
@click.option("--collection-keys", type=click.Choice(["indexed", "shared"]), help="Key scheme for repeated group instances")
@click.option("--output-format", "-f", type=click.Choice(["markdown", "csv", "json", "junit"]))
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Report file path")
@click.option("--graph-url", type=str, help="Service base URL override")
@click.option("--refresh-catalog", is_flag=True, help="Ignore the catalog cache and fetch it again")
@click.option("--ci", is_flag=True, help="CI mode: exit non-zero on drift")
def cli(
    ctx: click.Context,
    project: str,
    baselines: tuple[str, ...],
    policies: str | None,
    policy_names: tuple[str, ...],
    policy_type: str | None,
    collection_keys: str | None,
    output_format: str | None,
    output: str | None,
    graph_url: str | None,
    refresh_catalog: bool,
    ci: bool,
) -> None:
    """fleetaudit - compare configuration policies against security baselines."""
    ctx.ensure_object(dict)
    ctx.obj["project"] = Path(project)
    if ctx.invoked_subcommand is not None:
        return

    if not baselines:
        click.echo("Error: --baseline/-b is required for compare mode.", err=True)
        ctx.exit(11)
        return

    from ..core.auditor import run_audit

    exit_code = asyncio.run(
        run_audit(
            project_path=Path(project),
            baselines=[Path(b) for b in baselines],
            policies_path=Path(policies) if policies else None,
            policy_names=list(policy_names) or None,
            output_format=output_format,
            output_path=Path(output) if output else None,
            ci=ci,
            policy_type=policy_type,
            collection_keys=collection_keys,
            graph_base_url=graph_url,
            refresh_catalog=refresh_catalog,
        )
    )
    _exit(exit_code, ci)


@cli.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """Initialize .fleetaudit/ in the project."""
    from ..core.config import initialize_project

    config_path = initialize_project(ctx.obj["project"])
    click.echo(f"Initialized {config_path}")


@cli.command()
@click.pass_context
@click.argument("output_dir", type=click.Path(file_okay=False))
@click.option("--policy", "policy_names", multiple=True, help="Only pull this policy name or id (repeatable)")
@click.option("--policy-type", type=click.Choice(["settings-catalog", "endpoint-security", "security-baseline", "all"]))
def pull(ctx: click.Context, output_dir: str, policy_names: tuple[str, ...], policy_type: str | None) -> None:
    """Save policies from the service as offline exports.

    Example: fleetaudit pull ./exports --policy "Windows - Defender"
    """
    from ..core.auditor import pull_policies

    exit_code = asyncio.run(
        pull_policies(
            project_path=ctx.obj["project"],
            output_dir=Path(output_dir),
            policy_names=list(policy_names) or None,
            policy_type=policy_type,
        )
    )
    _exit(exit_code)


@cli.command("baselines")
@click.argument("baselines_dir", type=click.Path(exists=True, file_okay=False))
def list_baselines(baselines_dir: str) -> None:
    """List baseline bundles under a directory."""
    from ..core.baselines import get_available_baselines

    bundles = get_available_baselines(Path(baselines_dir))
    if not bundles:
        click.echo("No baseline bundles found.")
        return
    for bundle in bundles:
        click.echo(f"{bundle['name']}\t{bundle['files']} file(s)\t{bundle['path']}")


@cli.group()
def catalog() -> None:
    """Manage the reference catalog cache."""


@catalog.command()
@click.pass_context
def refresh(ctx: click.Context) -> None:
    """Fetch the catalog from the service and rewrite the cache."""
    from ..core.auditor import refresh_catalog

    _exit(asyncio.run(refresh_catalog(ctx.obj["project"])))


@catalog.command()
@click.pass_context
def clear(ctx: click.Context) -> None:
    """Delete the catalog cache."""
    from ..core.auditor import clear_catalog

    _exit(clear_catalog(ctx.obj["project"]))


@catalog.command()
@click.pass_context
@click.argument("setting_id")
def show(ctx: click.Context, setting_id: str) -> None:
    """Show how a setting or value id resolves.

    Example: fleetaudit catalog show device_vendor_msft_bitlocker_requiredeviceencryption
    """
    from ..core.auditor import show_catalog_entry

    _exit(asyncio.run(show_catalog_entry(ctx.obj["project"], setting_id)))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
