"""Click CLI for ctreport."""

import json
import logging
import sys

import click

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)


def _read_dictation(file) -> str:
    text = file.read() if file else sys.stdin.read()
    if not text.strip():
        click.echo("Empty dictation.", err=True)
        sys.exit(1)
    return text


@click.group()
def cli():
    """ctreport: CT report assembly from free-text dictation."""


@cli.command()
@click.option("--file", "file", type=click.File("r", encoding="utf-8"), default=None, help="Dictation file (default: stdin)")
@click.option("--no-llm", is_flag=True, help="Do not call the language-model fallback classifier")
def generate(file, no_llm):
    """Generate a report from a dictation."""
    from ctreport.report.service import ReportGenerationError, generate_report

    dictation = _read_dictation(file)
    kwargs = {"fallback": None} if no_llm else {}
    try:
        click.echo(generate_report(dictation, **kwargs))
    except ReportGenerationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.option("--file", "file", type=click.File("r", encoding="utf-8"), default=None, help="Dictation file (default: stdin)")
@click.option("--no-llm", is_flag=True, help="Do not call the language-model fallback classifier")
def plan(file, no_llm):
    """Show how each dictated sentence is classified, as JSON."""
    import asyncio

    from ctreport.report.service import ReportGenerationError, build_plan

    dictation = _read_dictation(file)
    kwargs = {"fallback": None} if no_llm else {}
    try:
        result = asyncio.run(build_plan(dictation, **kwargs))
    except ReportGenerationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))


@cli.command()
def check_catalog():
    """Validate the reference tables and report inconsistencies."""
    from ctreport.config import settings
    from ctreport.reference import ReferenceDataError, load_reference_data
    from ctreport.report.catalog_check import check_reference_data

    try:
        reference = load_reference_data(settings.data_dir)
    except ReferenceDataError as e:
        click.echo(f"Reference data FAILED: {e}", err=True)
        sys.exit(1)

    click.echo(f"  normal phrases:  {len(reference.normal_phrases):,}")
    click.echo(f"  finding groups:  {len(reference.findings):,}")
    click.echo(f"  fuzzy entries:   {len(reference.fuzzy_lexicon):,}")

    problems = check_reference_data(reference)
    if not problems:
        click.echo("No inconsistencies found.")
        return
    click.echo(f"\n{len(problems)} inconsistencies:")
    for p in problems:
        click.echo(f"  - {p}")
    sys.exit(1)


@cli.command()
def run_web():
    """Start the FastAPI web interface."""
    import uvicorn
    from ctreport.config import settings
    uvicorn.run(
        "ctreport.web.app:app",
        host=settings.web_host,
        port=settings.web_port,
        reload=False,
    )


if __name__ == "__main__":
    cli()
