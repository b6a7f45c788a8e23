# file: scamshield/cli.py
"""
scamshield CLI.

Commands:
  - lookup: fetch the risk report for a number
  - block / unblock: mutate the shared block list and reload the extension
  - list: show the block list
  - reload: re-signal the call-directory extension
  - report-call: submit a call report to the report API
  - extension run: call-directory extension entry point (separate process)
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import date
from pathlib import Path
from typing import Any

import click

from scamshield import __version__
from scamshield.bridge import BlockListExtensionBridge, ReloadOutcome
from scamshield.config import ScamshieldSettings, load_settings
from scamshield.core.parser import display_number, normalize_number
from scamshield.errors import (
    InvalidNumberError,
    NumberLookupError,
    NumberNotFoundError,
    StoreUnavailableError,
)
from scamshield.extension import CallDirectoryProvider, RecordingContext
from scamshield.hosts import (
    ExtensionHost,
    LocalExtensionHost,
    SubprocessExtensionHost,
    default_extension_command,
)
from scamshield.logging_config import configure_logging
from scamshield.net.http import PerHostRateLimiter, build_async_client
from scamshield.reputation.client import NumberIntelligenceClient
from scamshield.reputation.report import CallReport
from scamshield.service import BlockingPolicy, BlockingService, BlockResult
from scamshield.store import BlockListStore

logger = logging.getLogger(__name__)


class _State:
    def __init__(self, config_path: Path | None) -> None:
        self.config_path = config_path
        self._settings: ScamshieldSettings | None = None

    @property
    def settings(self) -> ScamshieldSettings:
        if self._settings is None:
            self._settings = load_settings(yaml_path=self.config_path)
        return self._settings


def _build_host(state: _State) -> ExtensionHost:
    settings = state.settings
    if settings.extension_host == "local":
        return LocalExtensionHost(
            settings.shared_container(),
            extension_id=settings.extension_id,
            key=settings.collection_key,
        )
    config_arg = str(state.config_path) if state.config_path is not None else None
    return SubprocessExtensionHost(default_extension_command(config_arg))


def _build_bridge(state: _State) -> BlockListExtensionBridge:
    settings = state.settings
    return BlockListExtensionBridge(
        _build_host(state),
        extension_id=settings.extension_id,
        timeout_seconds=settings.reload_timeout_seconds,
        max_retries=settings.reload_max_retries,
        backoff_base_seconds=settings.reload_backoff_base_seconds,
        backoff_max_seconds=settings.reload_backoff_max_seconds,
    )


def _open_store(settings: ScamshieldSettings) -> BlockListStore:
    return BlockListStore(settings.shared_container(), key=settings.collection_key)


async def _with_intel(settings: ScamshieldSettings, fn: Any) -> Any:
    http_config = settings.http_config()
    rate_limiter = PerHostRateLimiter(rate_per_second=http_config.rate_limit_per_host_per_second)
    async with build_async_client(http_config) as client:
        intel = NumberIntelligenceClient(
            client=client,
            base_url=settings.api_base_url,
            http_config=http_config,
            rate_limiter=rate_limiter,
        )
        return await fn(intel)


async def _block_async(
    state: _State, number: str, *, force: bool, skip_lookup: bool
) -> BlockResult:
    settings = state.settings
    store = _open_store(settings)
    bridge = _build_bridge(state)
    policy = BlockingPolicy(threshold=settings.block_threshold, weights=settings.decision_weights)

    if skip_lookup:
        service = BlockingService(store, bridge, policy=policy)
        return await service.block(number, force=force, consult_intel=False)

    async def run(intel: NumberIntelligenceClient) -> BlockResult:
        service = BlockingService(store, bridge, intel=intel, policy=policy)
        return await service.block(number, force=force)

    return await _with_intel(settings, run)


def _echo_result(result: BlockResult, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2, sort_keys=True))
        return
    click.echo(result.message)
    if result.decision is not None:
        click.echo(f"  Score: {result.decision.score}/100 (threshold {result.decision.threshold})")
    if result.reload is not None and result.reload.error is not None:
        click.echo(f"  Reload: {result.reload.error.reason}", err=True)


def _setup(state: _State, role: str = "app") -> ScamshieldSettings:
    settings = state.settings
    configure_logging(
        level=settings.log_level,
        json_logging=settings.json_logging,
        role="extension" if role == "extension" else "app",
    )
    return settings


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML config path.",
)
@click.pass_context
def main(ctx: click.Context, config_path: Path | None) -> None:
    """Scam call blocking: shared block list and call-directory extension."""

    ctx.obj = _State(config_path)


@main.command("lookup")
@click.argument("number", type=str)
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON.")
@click.pass_obj
def lookup_cmd(state: _State, number: str, as_json: bool) -> None:
    """Fetch the risk report for NUMBER."""

    settings = _setup(state)

    async def run(intel: NumberIntelligenceClient) -> Any:
        return await intel.lookup(number)

    try:
        report = asyncio.run(_with_intel(settings, run))
    except NumberNotFoundError:
        click.echo(f"No reports found for {number}.")
        return
    except NumberLookupError as exc:
        raise click.ClickException(str(exc)) from exc

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2, sort_keys=True))
    else:
        click.echo(f"Number: {report.phone_number}")
        click.echo(f"  Risk score: {report.risk_score}/100")
        click.echo(f"  Times reported: {report.times_reported}")


@main.command("block")
@click.argument("number", type=str)
@click.option("--force", is_flag=True, help="Block even if the risk score is below threshold.")
@click.option("--skip-lookup", is_flag=True, help="Do not consult the report API.")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON.")
@click.pass_obj
def block_cmd(state: _State, number: str, force: bool, skip_lookup: bool, as_json: bool) -> None:
    """Add NUMBER to the block list and reload the extension."""

    _setup(state)
    try:
        result = asyncio.run(_block_async(state, number, force=force, skip_lookup=skip_lookup))
    except (InvalidNumberError, StoreUnavailableError) as exc:
        raise click.ClickException(str(exc)) from exc
    _echo_result(result, as_json)


@main.command("unblock")
@click.argument("number", type=str)
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON.")
@click.pass_obj
def unblock_cmd(state: _State, number: str, as_json: bool) -> None:
    """Remove NUMBER from the block list and reload the extension."""

    settings = _setup(state)
    try:
        service = BlockingService(_open_store(settings), _build_bridge(state))
        result = asyncio.run(service.unblock(number))
    except (InvalidNumberError, StoreUnavailableError) as exc:
        raise click.ClickException(str(exc)) from exc
    _echo_result(result, as_json)


@main.command("list")
@click.option("--json", "as_json", is_flag=True, help="Print numbers as a JSON array.")
@click.pass_obj
def list_cmd(state: _State, as_json: bool) -> None:
    """Show blocked numbers in ascending order."""

    settings = _setup(state)
    try:
        numbers = _open_store(settings).list()
    except StoreUnavailableError as exc:
        raise click.ClickException(str(exc)) from exc

    if as_json:
        click.echo(json.dumps(numbers))
        return
    if not numbers:
        click.echo("No blocked numbers.")
    for n in numbers:
        click.echo(display_number(n))


@main.command("reload")
@click.pass_obj
def reload_cmd(state: _State) -> None:
    """Ask the host to re-invoke the call-directory extension."""

    _setup(state)
    bridge = _build_bridge(state)
    outcome: ReloadOutcome = asyncio.run(bridge.reload())
    if outcome.error is not None:
        raise click.ClickException(str(outcome.error))
    click.echo(f"Reloaded {outcome.request.extension_id} ({outcome.attempts} attempt(s)).")


@main.command("report-call")
@click.argument("number", type=str)
@click.option("--username", required=True)
@click.option("--reason", required=True)
@click.option(
    "--date",
    "report_date",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Date of the call (default: today).",
)
@click.pass_obj
def report_call_cmd(
    state: _State, number: str, username: str, reason: str, report_date: Any
) -> None:
    """Submit a call report for NUMBER."""

    settings = _setup(state)
    try:
        digits = str(normalize_number(number))
    except InvalidNumberError as exc:
        raise click.ClickException(str(exc)) from exc

    report = CallReport(
        username=username,
        number=digits,
        reason=reason,
        date=report_date.date() if report_date is not None else date.today(),
    )

    async def run(intel: NumberIntelligenceClient) -> Any:
        return await intel.report_call(report)

    try:
        answer = asyncio.run(_with_intel(settings, run))
    except NumberLookupError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(str(answer.get("message") or "Reported."))


@main.group("extension")
def extension_group() -> None:
    """Call-directory extension entry points."""


@extension_group.command("run")
@click.option("--extension-id", default=None, help="Identifier the host is invoking.")
@click.pass_obj
def extension_run_cmd(state: _State, extension_id: str | None) -> None:
    """
    Populate the call directory from the shared block list.

    Prints `{state, entries, error}` as JSON on stdout; exits 1 when cancelled.
    """

    settings = _setup(state, role="extension")
    context = RecordingContext()

    if extension_id is not None and extension_id != settings.extension_id:
        context.cancel_request(ValueError(f"Unknown extension {extension_id!r}"))
    else:
        store = BlockListStore.open_readonly(
            settings.shared_container(), key=settings.collection_key
        )
        CallDirectoryProvider(store).begin_request(context)

    click.echo(json.dumps(context.to_dict()))
    if not context.completed:
        raise SystemExit(1)
