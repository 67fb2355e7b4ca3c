"""
apimextract CLI entry point.
"""
import sys
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from apimextract import __version__
from apimextract.client import ManagementClient
from apimextract.config import ExtractorConfig
from apimextract.errors import ExtractionError
from apimextract.events import EventStream, console_sink
from apimextract.pipeline import engine
from apimextract.reporters import summary as summary_reporter
from apimextract.reporters.template_writer import render_bundle, write_bundle

_BANNER = r"""
   __ _ _ __ (_)_ __ ___     _____  _| |_ _ __ __ _  ___| |_
  / _` | '_ \| | '_ ` _ \   / _ \ \/ / __| '__/ _` |/ __| __|
 | (_| | |_) | | | | | | | |  __/>  <| |_| | | (_| | (__| |_
  \__,_| .__/|_|_| |_| |_|  \___/_/\_\\__|_|  \__,_|\___|\__|
       |_|
"""


def _print_banner(no_color: bool = False) -> None:
    c = Console(stderr=True, no_color=no_color)
    c.print(f"[bold blue]{_BANNER}[/bold blue]")
    c.print(f"  [dim]API Management template extractor[/dim]   [dim]v{__version__}[/dim]\n")


def _print_counts_table(result: engine.ExtractionResult, no_color: bool) -> None:
    """Print a per-kind summary table to stderr."""
    tbl = Table(title="Extracted Templates", show_header=True, header_style="bold")
    tbl.add_column("Kind", width=22)
    tbl.add_column("Entities", justify="right", width=9)
    tbl.add_column("Resources", justify="right", width=10)
    tbl.add_column("File")

    for kind, template in result.templates.items():
        tbl.add_row(
            kind.value,
            str(result.record_counts.get(kind, 0)),
            str(len(template)),
            result.file_names.for_kind(kind),
        )

    Console(stderr=True, no_color=no_color).print(tbl)


@click.group(context_settings=dict(help_option_names=["-h", "--help"]))
@click.version_option(__version__)
@click.pass_context
def cli(ctx):
    """apimextract: export an API Management service into ARM templates."""
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        ctx.exit()


@cli.command()
@click.option(
    "--config", "config_file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Extractor config file (YAML or JSON); options given on the command line win.",
)
@click.option("--source-apim", "source_apim_name", default=None, help="Source API Management name.")
@click.option("--destination-apim", "destination_apim_name", default=None, help="Destination API Management name.")
@click.option("--resource-group", default=None, help="Resource group of the source service.")
@click.option("--file-folder", type=click.Path(file_okay=False), default=None, help="ARM template output folder.")
@click.option("--api-name", default=None, help="Extract a single API and what it references.")
@click.option(
    "--linked-templates-base-url",
    default=None,
    help="Create a master template that links the per-kind templates from this URL.",
)
@click.option(
    "--linked-templates-url-query-string",
    default=None,
    help="Query string appended to linked template URIs (e.g. a SAS token for private storage).",
)
@click.option(
    "--policy-xml-base-url",
    default=None,
    help="Write policies to XML files deployed from this URL instead of inlining them.",
)
@click.option("--subscription-id", default=None, help="Subscription of the source service (default: the only one the Azure CLI login can see).")
@click.option("--max-workers", type=click.IntRange(min=1), default=None, help="Entity kinds read in parallel.")
@click.option(
    "--summary",
    is_flag=True,
    default=False,
    help="Also write a Markdown summary of the bundle.",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Show per-kind progress details.")
@click.option(
    "--no-color",
    is_flag=True,
    default=False,
    help="Disable rich terminal color output.",
)
def extract(
    config_file: Optional[str],
    source_apim_name: Optional[str],
    destination_apim_name: Optional[str],
    resource_group: Optional[str],
    file_folder: Optional[str],
    api_name: Optional[str],
    linked_templates_base_url: Optional[str],
    linked_templates_url_query_string: Optional[str],
    policy_xml_base_url: Optional[str],
    subscription_id: Optional[str],
    max_workers: Optional[int],
    summary: bool,
    verbose: bool,
    no_color: bool,
) -> None:
    """
    Extract the configuration of an API Management service into ARM templates.
    """
    _print_banner(no_color)
    stderr = Console(stderr=True, no_color=no_color)

    # 1. Configuration
    try:
        base = ExtractorConfig.from_file(config_file) if config_file else ExtractorConfig()
        config = base.merged({
            "source_apim_name": source_apim_name,
            "destination_apim_name": destination_apim_name,
            "resource_group": resource_group,
            "file_folder": file_folder,
            "api_name": api_name,
            "linked_templates_base_url": linked_templates_base_url,
            "linked_templates_url_query_string": linked_templates_url_query_string,
            "policy_xml_base_url": policy_xml_base_url,
            "subscription_id": subscription_id,
            "max_workers": max_workers,
        })
        config.validate()
    except ExtractionError as exc:
        stderr.print(f"[red]{escape(exc.describe())}[/red]")
        sys.exit(2)

    stderr.print(
        f"Connecting to [bold]{config.source_apim_name}[/bold] API Management Service "
        f"on [bold]{config.resource_group}[/bold] Resource Group …"
    )
    events = EventStream()
    events.subscribe(console_sink(stderr, verbose=verbose))

    # 2. Extract and render everything before touching the output folder
    try:
        with stderr.status("[bold]Extracting templates…"):
            with ManagementClient.from_config(config) as client:
                result = engine.run(config, client, events)
            files = render_bundle(result)
            if summary:
                files[result.file_names.summary] = summary_reporter.build_report(result)
    except ExtractionError as exc:
        stderr.print(f"[red]{escape(exc.describe())}[/red]")
        sys.exit(2)

    _print_counts_table(result, no_color)
    if result.flags:
        stderr.print(f"[yellow]{len(result.flags)} reference(s) dropped outside the API scope.[/yellow]")
    if result.parameters.secrets:
        stderr.print(
            f"[yellow]Fill in {', '.join(result.parameters.secrets)} in "
            f"{escape(result.file_names.parameters)} before deploying.[/yellow]"
        )

    # 3. Write
    try:
        write_bundle(files, config.file_folder)
    except OSError as exc:
        stderr.print(f"[red]Write error:[/red] {escape(str(exc))}")
        sys.exit(2)

    stderr.print(f"Templates written to [bold]{config.file_folder}[/bold]")
    sys.exit(0)


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
