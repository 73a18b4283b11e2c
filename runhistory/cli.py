"""CLI entry point for runhistory."""

from __future__ import annotations

import dataclasses
import json
import sys
from pathlib import Path
from typing import Optional

import click

from runhistory import __version__
from runhistory.config.settings import HistoryConfig, load_config
from runhistory.models import RunRecord, Tag, TestOutcome, TestResult, With
from runhistory.statistics import StatisticsEngine, StatisticsRecorder, StaticTagResolver
from runhistory.storage import RunStore, create_store
from runhistory.utils.logging import configure_logging, get_logger
from runhistory.utils.result import ExitCode, InvalidFilterError, StorageFailure

# Default paths
DEFAULT_CONFIG = "."


class Context:
    """CLI context for sharing state between commands."""

    def __init__(self, config: HistoryConfig) -> None:
        self.config = config
        self.logger = get_logger("cli")
        self._store: Optional[RunStore] = None

    def store(self) -> RunStore:
        """The configured store, initialized on first use."""
        if self._store is not None:
            return self._store

        result = create_store(self.config.storage)
        if result.is_err():
            fail(str(result.unwrap_err()), ExitCode.CONFIG_INVALID)
        store = result.unwrap()

        init_result = store.initialize()
        if init_result.is_err():
            fail(str(init_result.unwrap_err()), ExitCode.STORAGE_FAILED)

        self._store = store
        return store


pass_context = click.make_pass_decorator(Context)


def output_json(data: dict) -> None:
    """Output JSON to stdout."""
    click.echo(json.dumps(data, indent=2, default=str))


def fail(message: str, code: int) -> None:
    """Report an error and exit with ``code``."""
    output_json({"status": "error", "message": message})
    sys.exit(code)


def build_filter(
    title: Optional[str],
    tag: Optional[str],
    tag_type: Optional[str],
    project: Optional[str],
) -> With:
    return With(title_=title, tag_=tag, tag_type_=tag_type, project_key=project)


def filter_options(command):
    """Options shared by the commands that select runs."""
    command = click.option("--project", default=None, help="Restrict to one project")(command)
    command = click.option("--tag-type", default=None, help="Runs carrying a tag of this type")(command)
    command = click.option("--tag", default=None, help="Runs carrying a tag with this name")(command)
    command = click.option("--title", default=None, help="Runs of the test with this title")(command)
    return command


def format_option(command):
    return click.option(
        "--format",
        "output_format",
        type=click.Choice(["table", "json"], case_sensitive=False),
        default="table",
        help="Output format",
    )(command)


@click.group()
@click.option(
    "--config",
    type=click.Path(exists=False, file_okay=False, path_type=Path),
    default=DEFAULT_CONFIG,
    help="Directory holding runhistory.yaml",
)
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warn", "error"], case_sensitive=False),
    default=None,
    help="Logging level (overrides the configuration)",
)
@click.option(
    "--log-format",
    type=click.Choice(["json", "text"], case_sensitive=False),
    default=None,
    help="Log format (overrides the configuration)",
)
@click.version_option(version=__version__)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Path,
    log_level: Optional[str],
    log_format: Optional[str],
) -> None:
    """
    Test run history - record test outcomes and report pass rates.

    Keeps an append-only history of test runs and answers questions about
    it: how often a test ran, how often it passed, and its pass rate over
    its most recent runs, per test, tag, tag type or project.
    """
    result = load_config(config)
    if result.is_err():
        fail(str(result.unwrap_err()), ExitCode.CONFIG_INVALID)
    history_config = result.unwrap()

    configure_logging(
        level=log_level or history_config.logging.level,
        format_type=log_format or history_config.logging.format,
    )

    ctx.obj = Context(history_config)


@cli.command()
@pass_context
def init(ctx: Context) -> None:
    """Create the run history store."""
    ctx.store()
    output_json({
        "status": "success",
        "backend": ctx.config.storage.backend,
        "path": ctx.config.storage.path,
    })


@cli.command()
@filter_options
@click.option("--last", type=click.IntRange(min=0), default=None, help="Also report the pass rate over the last N runs")
@format_option
@pass_context
def stats(
    ctx: Context,
    title: Optional[str],
    tag: Optional[str],
    tag_type: Optional[str],
    project: Optional[str],
    last: Optional[int],
    output_format: str,
) -> None:
    """Show statistics for a test, tag, tag type or project."""
    run_filter = build_filter(title, tag, tag_type, project)
    engine = StatisticsEngine(ctx.store())

    try:
        statistics = engine.statistics_for_tests(run_filter)
    except InvalidFilterError as e:
        fail(str(e), ExitCode.INVALID_FILTER)
    except StorageFailure as e:
        fail(str(e), ExitCode.STORAGE_FAILED)

    if output_format == "json":
        output_json({"filter": run_filter.describe(), **statistics.to_dict(last=last)})
        return

    click.echo(f"Statistics for {run_filter.describe()}")
    click.echo("=" * 40)
    click.echo(f"Total runs:   {statistics.total_test_runs}")
    click.echo(f"Passing runs: {statistics.passing_test_runs}")
    click.echo(f"Failing runs: {statistics.failing_test_runs}")
    click.echo(f"Pass rate:    {statistics.overall_pass_rate:.1%}")
    if last is not None:
        click.echo(f"Last {last}:      {statistics.pass_rate.over_the_last(last):.1%}")
    if statistics.tags:
        click.echo("Tags:         " + ", ".join(str(tag) for tag in statistics.tags))


@cli.command()
@filter_options
@format_option
@pass_context
def history(
    ctx: Context,
    title: Optional[str],
    tag: Optional[str],
    tag_type: Optional[str],
    project: Optional[str],
    output_format: str,
) -> None:
    """List recorded runs, oldest first."""
    engine = StatisticsEngine(ctx.store())

    try:
        if title is None and tag is None and tag_type is None and project is None:
            runs = engine.get_all_test_histories()
        else:
            runs = engine.test_runs_for_test(build_filter(title, tag, tag_type, project))
    except InvalidFilterError as e:
        fail(str(e), ExitCode.INVALID_FILTER)
    except StorageFailure as e:
        fail(str(e), ExitCode.STORAGE_FAILED)

    if output_format == "json":
        output_json({"total": len(runs), "runs": [run.to_dict() for run in runs]})
        return

    for run in runs:
        click.echo(_format_run(run))


def _format_run(run: RunRecord) -> str:
    tags = ", ".join(str(tag) for tag in sorted(run.tags))
    line = (
        f"{run.id:>6}  {run.execution_date.isoformat(timespec='seconds')}  "
        f"{run.result.value:<11}  {run.duration:>7}ms  [{run.project_key}] {run.title}"
    )
    return f"{line}  {{{tags}}}" if tags else line


@cli.command()
@click.option("--project", default=None, help="Restrict to one project")
@format_option
@pass_context
def tags(ctx: Context, project: Optional[str], output_format: str) -> None:
    """List the tags carried by the latest run of each test."""
    engine = StatisticsEngine(ctx.store(), project_key=project)
    try:
        all_tags = engine.find_all_tags()
    except StorageFailure as e:
        fail(str(e), ExitCode.STORAGE_FAILED)

    if output_format == "json":
        output_json({"tags": [tag.to_dict() for tag in all_tags]})
        return
    for tag in all_tags:
        click.echo(f"{tag.type:<12} {tag.name}")


@cli.command("tag-types")
@click.option("--project", default=None, help="Restrict to one project")
@format_option
@pass_context
def tag_types(ctx: Context, project: Optional[str], output_format: str) -> None:
    """List the tag types in use."""
    engine = StatisticsEngine(ctx.store(), project_key=project)
    try:
        types = engine.find_all_tag_types()
    except StorageFailure as e:
        fail(str(e), ExitCode.STORAGE_FAILED)

    if output_format == "json":
        output_json({"tag_types": types})
        return
    for type_ in types:
        click.echo(type_)


@cli.command()
@click.argument("title")
@click.option(
    "--result",
    "result_name",
    type=click.Choice([r.value for r in TestResult], case_sensitive=False),
    default=TestResult.SUCCESS.value,
    help="Outcome of the run",
)
@click.option("--duration", type=click.IntRange(min=0), default=0, help="Elapsed milliseconds")
@click.option("--tag", "tag_specs", multiple=True, help="Tag as name:type (can be repeated)")
@click.option("--force", is_flag=True, default=False, help="Record even if recording is disabled")
@pass_context
def record(
    ctx: Context,
    title: str,
    result_name: str,
    duration: int,
    tag_specs: tuple[str, ...],
    force: bool,
) -> None:
    """Record the outcome of one test run."""
    config = ctx.config
    if force and not config.recording_enabled:
        config = dataclasses.replace(config, recording_enabled=True)

    declared = [Tag.parse(spec) for spec in tag_specs]
    recorder = StatisticsRecorder(
        ctx.store(),
        config,
        tag_resolver=StaticTagResolver({title: declared}),
    )
    outcome = TestOutcome(title=title, result=TestResult(result_name.lower()), duration=duration)

    result = recorder.test_finished(outcome)
    if result.is_err():
        fail(str(result.unwrap_err()), ExitCode.STORAGE_FAILED)

    run_id = result.unwrap()
    if run_id is None:
        output_json({"status": "skipped", "message": "Recording is disabled"})
        return
    output_json({"status": "recorded", "run_id": run_id, "project": config.project_key})


def main() -> None:
    """Main entry point."""
    try:
        cli()
    except Exception as e:
        logger = get_logger("cli")
        logger.error("cli_error", error=str(e))
        sys.exit(ExitCode.GENERAL_ERROR)


if __name__ == "__main__":
    main()
