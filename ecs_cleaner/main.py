"""Command line entry point."""

import asyncio
import os
import sys

import click
import structlog

from ecs_cleaner.core.config import settings
from ecs_cleaner.core.logging import configure_logging
from ecs_cleaner.providers.aws import AWSECSProvider
from ecs_cleaner.schemas.cleanup import CleanupConfig
from ecs_cleaner.schemas.report import CleanupReport
from ecs_cleaner.services.cleanup import TaskDefinitionCleaner

logger = structlog.get_logger()


def init_sentry() -> None:
    """Initialize Sentry error tracking when a DSN is configured."""
    if not settings.SENTRY_DSN:
        return

    import sentry_sdk

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.SENTRY_ENVIRONMENT,
        send_default_pii=False,
        release=f"ecs-cleaner@{os.getenv('GIT_COMMIT', 'dev')}",
        attach_stacktrace=True,
    )
    logger.info("sentry.initialized", environment=settings.SENTRY_ENVIRONMENT)


class ProgressPrinter:
    """Rewrites a single "(found N)" style line while pagination runs."""

    DEREGISTER_LABELS = ("deregistered", "deregister failed")

    def __init__(self, enabled: bool) -> None:
        self.enabled = enabled
        self.label: str | None = None
        self.tallies = dict.fromkeys(self.DEREGISTER_LABELS, 0)

    def __call__(self, label: str, count: int) -> None:
        if not self.enabled:
            return

        # successes and failures share one line
        line = "deregister" if label in self.DEREGISTER_LABELS else label
        if self.label is not None and line != self.label:
            self.finish()
        self.label = line

        if line == "deregister":
            self.tallies[label] = count
            click.echo(
                f"\r{self.tallies['deregistered']} deregistered task definitions, "
                f"{self.tallies['deregister failed']} failed",
                nl=False,
            )
        else:
            click.echo(f"\r({label}: found {count})", nl=False)

    def finish(self) -> None:
        if self.label is not None:
            click.echo()
            self.label = None


def print_report(report: CleanupReport, config: CleanupConfig) -> None:
    """Echo the run report, honouring quiet/verbose."""
    if config.quiet:
        return

    click.echo(f"Found {report.clusters} clusters and {report.services} services")
    click.echo(f"Found {report.task_definitions} task definitions")
    click.echo(f"Filtering out {report.in_use} in-use task definitions")
    if config.verbose:
        for arn in report.in_use_arns:
            click.echo(f"  {arn}")

    click.echo(f"{report.remaining} task definitions remain")
    click.echo(
        f"Filtering out {report.protected} recent task definitions "
        f"across {report.families} families"
    )
    if config.verbose:
        for arn in report.protected_arns:
            click.echo(f"  {arn}")

    click.echo(f"{report.deletable} task definitions ready to be deregistered")
    if config.verbose:
        for arn in report.deletable_arns:
            click.echo(f"  {arn}")

    if not report.applied:
        if report.deletable:
            click.echo("This is a dry run.")
            click.echo("Use the `--apply` flag to deregister these task definitions.")
    elif report.retirement is not None:
        retirement = report.retirement
        click.echo(
            f"Deregistered {retirement.succeeded} of {retirement.total_jobs} task definitions "
            f"({retirement.failed} failed)"
        )
        for failure in retirement.failures:
            click.echo(f"  {failure.arn}: {failure.error_code} {failure.error_message}")

    click.echo("Process finished.")


async def run_cleanup(config: CleanupConfig) -> CleanupReport:
    """Open an AWS session, validate it, and run the cleanup."""
    progress = ProgressPrinter(enabled=not config.quiet)

    async with AWSECSProvider(region=config.region, profile=config.profile) as provider:
        identity = await provider.validate_credentials()
        if not config.quiet:
            click.echo(f"Using account {identity['account_id']} in {provider.region}")
            if config.apply:
                click.echo("`--apply` flag present, task definitions will be deregistered")

        cleaner = TaskDefinitionCleaner(provider, config, on_progress=progress)
        try:
            return await cleaner.run()
        finally:
            progress.finish()


@click.group()
def cli() -> None:
    """Clean up your ECS account."""


@cli.command("ecs-task")
@click.option("--apply", "-a", is_flag=True, help="Actually perform task definition deregistration.")
@click.option(
    "--cutoff",
    "-c",
    type=click.IntRange(min=0),
    default=settings.DEFAULT_CUTOFF,
    show_default=True,
    help="How many most-recent unused task definitions to keep per family.",
)
@click.option(
    "--parallel",
    "-p",
    type=click.IntRange(min=1),
    default=settings.DEFAULT_PARALLEL,
    show_default=True,
    help="Number of concurrent deregistration workers.",
)
@click.option("--region", "-r", default=None, help="AWS region (defaults to AWS_REGION, AWS_DEFAULT_REGION or the profile region).")
@click.option("--profile", default=None, help="AWS named profile.")
@click.option("--debug", "-d", is_flag=True, help="Enable for all the output.")
@click.option("--quiet", "-q", is_flag=True, help="Minimize output.")
@click.option("--verbose", "-v", is_flag=True, help="Enable for chattier output.")
def ecs_task(
    apply: bool,
    cutoff: int,
    parallel: int,
    region: str | None,
    profile: str | None,
    debug: bool,
    quiet: bool,
    verbose: bool,
) -> None:
    """
    Deregister unused task definitions (dry run by default).

    Credentials come from AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY, a named
    profile, or the default AWS credential chain.
    """
    try:
        config = CleanupConfig(
            apply=apply,
            cutoff=cutoff,
            parallel=parallel,
            region=region,
            profile=profile,
            debug=debug,
            quiet=quiet,
            verbose=verbose,
        )
    except ValueError as e:
        click.echo(f"Invalid options: {e}", err=True)
        sys.exit(1)

    if config.debug:
        level = "DEBUG"
    elif config.quiet:
        level = "WARNING"
    else:
        level = settings.LOG_LEVEL
    configure_logging(level, settings.LOG_JSON)
    init_sentry()

    try:
        report = asyncio.run(run_cleanup(config))
    except Exception as e:
        logger.exception("cleanup.failed", error=str(e))
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    print_report(report, config)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
