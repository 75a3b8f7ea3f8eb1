"""
Model Enrichment CLI.

Command-line interface for enrichment operations:
- candidates: Review listing of catalog entries with priority labels
- preview: Candidate selection for a config, without starting a run
- start: Start an execution and follow it until it finishes
- status: Show an execution (optionally follow it)
- cancel / cancel-all: Cooperative stop
- executions / stats: Execution history
- research: Research a single model without writing
- apply: Write a reviewed research payload to a model
- watchdog: Recover stuck executions (dry run by default)

The processor runs inside the CLI process, so `start` stays attached until
the execution ends. Ctrl-C requests cancellation and waits for the stop.

Usage:
    model-enrichment candidates --provider openai
    model-enrichment start --batch-size 5 --max-cost 2.0 --quality enhanced
    model-enrichment start --model-id gpt-4o --model-id claude-3-5-sonnet --test-mode
    model-enrichment status enrichment_ab12cd34 --follow
    model-enrichment watchdog --apply
"""

from __future__ import annotations

import json
import logging
import sys
import time
from typing import Any, Dict, Optional

import click

from model_enrichment.errors import (
    ExecutionNotFound,
    InvalidConfig,
    ModelNotFound,
    PayloadParseFailure,
)
from model_enrichment.jobs.controller import ExecutionController
from model_enrichment.jobs.models import (
    DataQuality,
    DetailLevel,
    EnrichmentConfig,
    GenerationParams,
)
from model_enrichment.jobs.watchdog import run_watchdog
from model_enrichment.selection.review import list_candidates_for_review
from model_enrichment.store import FirestoreStore

STATUS_COLORS = {
    "pending": "white",
    "running": "cyan",
    "completed": "green",
    "failed": "red",
    "cancelled": "yellow",
}


def _controller(ctx: click.Context) -> ExecutionController:
    from model_enrichment.enrichment.llm_client import get_llm_client
    from model_enrichment.enrichment.research import ResearchClient

    return ExecutionController(
        ctx.obj["store"],
        research_client=ResearchClient(get_llm_client(use_mock=ctx.obj["mock_llm"])),
    )


def _echo_snapshot(snapshot: Dict[str, Any]) -> None:
    status = snapshot["status"]
    click.echo(f"  Execution: {snapshot['id']}")
    click.echo("  Status:    " + click.style(status, fg=STATUS_COLORS.get(status, "white")))
    click.echo(
        f"  Progress:  {snapshot['processed_models']}/{snapshot['total_models']}"
        f" ({snapshot['progress_percent']}%) - {snapshot['successful_models']} ok,"
        f" {snapshot['failed_models']} failed"
    )
    click.echo(
        f"  Cost:      ${snapshot['actual_cost']:.4f} (estimated ${snapshot['estimated_cost']:.2f})"
    )
    if snapshot.get("stop_reason"):
        click.echo(f"  Stopped:   {snapshot['stop_reason']}")
    if snapshot.get("error"):
        click.echo(click.style(f"  Error:     {snapshot['error'].get('message')}", fg="red"))


def _echo_log(entry: Dict[str, Any]) -> None:
    color = {"error": "red", "warning": "yellow", "success": "green"}.get(entry["level"])
    click.echo(click.style(f"  [{entry['timestamp']}] {entry['message']}", fg=color))


def _follow(controller: ExecutionController, execution_id: str, interval: float) -> Dict[str, Any]:
    """Print new log lines until the execution is terminal; returns the final snapshot."""
    seen = set()
    while True:
        snapshot = controller.get_status(execution_id)
        if snapshot is None:
            raise ExecutionNotFound(execution_id)
        for entry in snapshot["logs"]:
            if entry["id"] not in seen:
                seen.add(entry["id"])
                _echo_log(entry)
        if snapshot["status"] in ("completed", "failed", "cancelled") and not controller.is_live(execution_id):
            return snapshot
        time.sleep(interval)


@click.group()
@click.option("--mock-llm", is_flag=True, help="Use the mock research backend")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx: click.Context, mock_llm: bool, verbose: bool):
    """Model Enrichment CLI - Research-driven catalog curation."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["mock_llm"] = mock_llm
    ctx.obj.setdefault("store", None)
    if ctx.obj["store"] is None:
        ctx.obj["store"] = FirestoreStore()


# =============================================================================
# CANDIDATES
# =============================================================================

@cli.command("candidates")
@click.option("--provider", help="Only models from this provider")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON rows")
@click.pass_context
def candidates(ctx: click.Context, provider: Optional[str], as_json: bool):
    """List catalog entries by enrichment priority."""
    rows = list_candidates_for_review(ctx.obj["store"], provider_id=provider)
    if as_json:
        click.echo(json.dumps(rows, indent=2, default=str))
        return

    colors = {"high": "red", "medium": "yellow", "low": "green"}
    for row in rows:
        days = row["days_since_update"]
        line = (
            f"{click.style(row['priority'].upper().ljust(6), fg=colors[row['priority']])} "
            f"{row['name'][:40].ljust(40)} {str(row['provider_id']).ljust(12)} "
            f"{row['data_quality'].ljust(9)} {row['enrichment_status'].ljust(6)} "
            f"{'-' if days is None else f'{days}d'}"
        )
        if row["is_being_processed"]:
            line += click.style(f"  [{row['processing_status']}]", fg="cyan")
        click.echo(line)
    click.echo(f"\n{len(rows)} models")


# =============================================================================
# START
# =============================================================================

def _config_options(func):
    options = [
        click.option("--batch-size", default=5, type=int, help="Models per batch (default: 5)"),
        click.option("--max-cost", default=1.0, type=float, help="USD ceiling for the run (default: 1.0)"),
        click.option("--quality", default=DetailLevel.ENHANCED.value,
                     type=click.Choice([d.value for d in DetailLevel]),
                     help="Research detail level"),
        click.option("--validate", is_flag=True, help="Require cited sources"),
        click.option("--provider", help="Only models from this provider"),
        click.option("--max-days", default=0, type=int,
                     help="Skip models updated within this many days (0 = no filter)"),
        click.option("--data-quality", "-q", multiple=True,
                     type=click.Choice([q.value for q in DataQuality]),
                     help="Only models with these data-quality tags"),
        click.option("--ai-model", default=None, help="Research model name"),
        click.option("--temperature", default=0.1, type=float, help="Sampling temperature"),
        click.option("--test-mode", is_flag=True, help="Research only, write nothing"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _build_config(
    batch_size: int,
    max_cost: float,
    quality: str,
    validate: bool,
    provider: Optional[str],
    max_days: int,
    data_quality: tuple,
    ai_model: Optional[str],
    temperature: float,
    test_mode: bool,
) -> EnrichmentConfig:
    config = EnrichmentConfig(
        batch_size=batch_size,
        max_cost_per_batch=max_cost,
        target_data_quality=quality,
        include_validation=validate,
        provider_id=provider,
        filter_by_recency=max_days > 0,
        max_days_since_update=max_days,
        filter_by_data_quality=bool(data_quality),
        allowed_data_qualities=list(data_quality),
        generation=GenerationParams(temperature=temperature),
        test_mode=test_mode,
    )
    if ai_model:
        config.ai_model = ai_model
    return config


@cli.command("preview")
@_config_options
@click.pass_context
def preview(ctx: click.Context, **options):
    """Show which models a run with these options would pick."""
    try:
        config = _build_config(**options)
    except InvalidConfig as e:
        click.echo(click.style(f"✗ Invalid configuration: {e}", fg="red"), err=True)
        sys.exit(2)

    selection = _controller(ctx).preview(config)
    for index, candidate in enumerate(selection.candidates, start=1):
        click.echo(f"{index:3d}. {candidate.name[:40].ljust(40)} score={candidate.score}")
    click.echo(f"\nCounts: {json.dumps(selection.counts())}")
    click.echo(f"Estimated cost: ${config.estimate_cost(selection.selected):.2f}")


@cli.command("start")
@_config_options
@click.option("--model-id", "-m", "model_ids", multiple=True,
              help="Explicit model IDs (overrides selection)")
@click.option("--interval", default=2.0, type=float, help="Progress refresh seconds")
@click.pass_context
def start(ctx: click.Context, model_ids: tuple, interval: float, **options):
    """
    Start an enrichment execution and follow it.

    Examples:
        model-enrichment start --provider anthropic --max-cost 0.5
        model-enrichment start -m gpt-4o -m o3-mini --test-mode
    """
    try:
        config = _build_config(**options)
    except InvalidConfig as e:
        click.echo(click.style(f"✗ Invalid configuration: {e}", fg="red"), err=True)
        sys.exit(2)

    controller = _controller(ctx)
    execution = controller.start(config, model_ids=list(model_ids) or None)
    click.echo(click.style("✓ Enrichment started", fg="green"))
    click.echo(f"  Execution: {execution.id}")
    click.echo(f"  Models:    {execution.total_models}")
    click.echo(f"  Estimated: ${execution.estimated_cost:.2f}")
    if config.test_mode:
        click.echo(click.style("\n⚠ Test mode: No changes will be written", fg="yellow"))

    try:
        snapshot = _follow(controller, execution.id, interval)
    except KeyboardInterrupt:
        click.echo(click.style("\nStopping execution...", fg="yellow"))
        controller.request_cancel(execution.id)
        controller.join(execution.id)
        snapshot = controller.get_status(execution.id)

    click.echo("")
    _echo_snapshot(snapshot)
    if snapshot["status"] == "failed":
        sys.exit(1)


# =============================================================================
# STATUS / CANCEL
# =============================================================================

@cli.command("status")
@click.argument("execution_id")
@click.option("--logs", "log_limit", default=10, type=int, help="Recent log lines to show")
@click.option("--follow", "-f", is_flag=True, help="Keep printing until the run ends")
@click.option("--interval", default=5.0, type=float, help="Refresh seconds with --follow")
@click.pass_context
def status(ctx: click.Context, execution_id: str, log_limit: int, follow: bool, interval: float):
    """Show an execution's progress."""
    controller = _controller(ctx)
    snapshot = controller.get_status(execution_id, log_limit=log_limit)
    if snapshot is None:
        click.echo(click.style(f"✗ Execution not found: {execution_id}", fg="red"), err=True)
        sys.exit(1)

    if follow:
        snapshot = _follow(controller, execution_id, interval)
    else:
        for entry in snapshot["logs"]:
            _echo_log(entry)
    _echo_snapshot(snapshot)


@cli.command("cancel")
@click.argument("execution_id")
@click.pass_context
def cancel(ctx: click.Context, execution_id: str):
    """Request a cooperative stop for one execution."""
    try:
        cancelled = _controller(ctx).request_cancel(execution_id)
    except ExecutionNotFound:
        click.echo(click.style(f"✗ Execution not found: {execution_id}", fg="red"), err=True)
        sys.exit(1)

    if cancelled:
        click.echo(click.style(f"✓ Cancellation requested: {execution_id}", fg="green"))
    else:
        click.echo(click.style(f"Execution already finished: {execution_id}", fg="yellow"))


@cli.command("cancel-all")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def cancel_all(ctx: click.Context, yes: bool):
    """Stop every pending or running execution."""
    if not yes:
        click.confirm("Cancel ALL running enrichment executions?", abort=True)
    stopped = _controller(ctx).cancel_all_running()
    click.echo(click.style(f"✓ Cancelled {len(stopped)} executions", fg="green"))
    for execution_id in stopped:
        click.echo(f"  {execution_id}")


# =============================================================================
# HISTORY
# =============================================================================

@cli.command("executions")
@click.option("--limit", default=20, type=int, help="Number of executions (1-100)")
@click.option("--running", is_flag=True, help="Only running executions")
@click.pass_context
def executions(ctx: click.Context, limit: int, running: bool):
    """List recent executions, newest first."""
    controller = _controller(ctx)
    items = controller.get_running_executions() if running else controller.list_executions(limit)
    for execution in items:
        status_value = execution.status.value
        click.echo(
            f"{execution.id}  "
            f"{click.style(status_value.ljust(9), fg=STATUS_COLORS.get(status_value))}  "
            f"{execution.processed_models}/{execution.total_models}  "
            f"${execution.actual_cost:.4f}  "
            f"{execution.started_at.isoformat() if execution.started_at else '-'}"
        )
    click.echo(f"\n{len(items)} executions")


@cli.command("stats")
@click.pass_context
def stats(ctx: click.Context):
    """Aggregate statistics over recent executions."""
    click.echo(json.dumps(_controller(ctx).get_workflow_stats(), indent=2))


# =============================================================================
# SINGLE MODEL / WATCHDOG
# =============================================================================

@cli.command("research")
@click.argument("model_id")
@click.option("--quality", default=DetailLevel.ENHANCED.value,
              type=click.Choice([d.value for d in DetailLevel]), help="Research detail level")
@click.option("--validate", is_flag=True, help="Require cited sources")
@click.option("--ai-model", default=None, help="Research model name")
@click.pass_context
def research(ctx: click.Context, model_id: str, quality: str, validate: bool, ai_model: Optional[str]):
    """Research one model and print the payload (nothing is written)."""
    config = EnrichmentConfig(target_data_quality=quality, include_validation=validate)
    if ai_model:
        config.ai_model = ai_model
    try:
        result = _controller(ctx).research_single(model_id, config)
    except ModelNotFound:
        click.echo(click.style(f"✗ Model not found: {model_id}", fg="red"), err=True)
        sys.exit(1)
    click.echo(json.dumps(result.to_dict(), indent=2, default=str))


@cli.command("apply")
@click.argument("model_id")
@click.argument("payload_file", type=click.File("r"))
@click.pass_context
def apply(ctx: click.Context, model_id: str, payload_file):
    """
    Write a reviewed research payload to a model.

    PAYLOAD_FILE holds the JSON printed by `research` (or just its payload).
    """
    data = json.load(payload_file)
    payload = data.get("payload", data) if isinstance(data, dict) else data
    try:
        updates = _controller(ctx).apply_research(model_id, payload)
    except ModelNotFound:
        click.echo(click.style(f"✗ Model not found: {model_id}", fg="red"), err=True)
        sys.exit(1)
    except PayloadParseFailure as e:
        click.echo(click.style(f"✗ Invalid payload: {e}", fg="red"), err=True)
        sys.exit(2)
    click.echo(click.style(f"✓ Updated {model_id}: {', '.join(sorted(updates))}", fg="green"))


@cli.command("watchdog")
@click.option("--apply", "apply_changes", is_flag=True, help="Mark stuck executions failed")
@click.pass_context
def watchdog(ctx: click.Context, apply_changes: bool):
    """Find executions stuck in pending/running."""
    results = run_watchdog(ctx.obj["store"], dry_run=not apply_changes)
    click.echo(json.dumps(results, indent=2, default=str))
    if not apply_changes and results["stuck_executions"]["found"]:
        click.echo(click.style("\n⚠ Dry-run mode: Run with --apply to recover", fg="yellow"))


if __name__ == "__main__":
    cli()
