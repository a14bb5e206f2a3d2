#!/usr/bin/env python3

import logging
import sys
from pathlib import Path

import click

from apiport.amalgamate import collect_files, directory_resolver, render_amalgamation
from apiport.config import AmalgamateOptions, ApiTransform, FloatingDocPolicy, GenerateOptions, ParseOptions
from apiport.console import Console
from apiport.errors import ApiportError
from apiport.generate import write_api
from apiport.models import Api
from apiport.parse import parse_api
from apiport.transform import transform_api


def _write_api(api: Api, output: Path | None) -> None:
    if output is None:
        click.echo(api.model_dump_json(by_alias=True, exclude_none=True, indent=2))
    else:
        api.save_to_file(output)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log debug messages")
def cli(verbose: bool):
    """apiport: extract, transform and amalgamate C header APIs."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )


@cli.command()
@click.argument("sources", nargs=-1, required=True)
@click.option("--base-dir", type=click.Path(exists=True, file_okay=False, path_type=Path), default=".")
@click.option("--line-numbers", is_flag=True, help="Keep source line numbers on entries")
@click.option("--tolerate-unknown", is_flag=True, help="Skip unrecognized statements")
@click.option(
    "--floating-docs",
    type=click.Choice([p.value for p in FloatingDocPolicy], case_sensitive=False),
    default=FloatingDocPolicy.DISCARD.value,
    help="What to do with doc comments attached to nothing",
)
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="JSON file to write")
def parse(sources, base_dir: Path, line_numbers: bool, tolerate_unknown: bool, floating_docs: str, output: Path | None):
    """Parse header files into a JSON model."""
    options = ParseOptions(
        store_line_numbers=line_numbers,
        tolerate_unknown=tolerate_unknown,
        floating_docs=FloatingDocPolicy(floating_docs.lower()),
    )
    try:
        api = parse_api(base_dir, sources, options)
    except ApiportError as e:
        raise click.ClickException(str(e)) from e
    _write_api(api, output)
    Console().done(f"Parsed {len(api.files)} file(s)")


@cli.command()
@click.argument("source", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--config", "config_path", required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--file", "names", multiple=True, help="Only transform these source files")
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="JSON file to write")
def transform(source: Path, config_path: Path, names, output: Path | None):
    """Transform a source JSON model into the target model."""
    console = Console()
    config = ApiTransform.load_from_file(config_path)
    api = Api.load_from_file(source)
    target, warnings = transform_api(api, config, list(names) or None)
    _write_api(target, output)
    console.warnings(warnings)
    console.done(f"Transformed {len(target.files)} file(s) with {len(warnings)} warning(s)")


@cli.command()
@click.argument("target", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--output-dir", required=True, type=click.Path(file_okay=False, path_type=Path))
@click.option("--namespace", default="SDL", show_default=True)
def generate(target: Path, output_dir: Path, namespace: str):
    """Write one header per file of a target JSON model."""
    api = Api.load_from_file(target)
    written = write_api(api, output_dir, GenerateOptions(namespace=namespace))
    Console().done(f"Wrote {len(written)} header(s) to {output_dir}")


@cli.command()
@click.argument("root")
@click.option("--base-dir", type=click.Path(exists=True, file_okay=False, path_type=Path), default=".")
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Header to write")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--namespace", help="Namespace of the headers")
@click.option("--guard", help="Guard macro of the result")
@click.option("--master-include", help="Include appended after the system includes")
def amalgamate(
    root: str,
    base_dir: Path,
    output: Path | None,
    config_path: Path | None,
    namespace: str | None,
    guard: str | None,
    master_include: str | None,
):
    """Merge ROOT and the headers it includes into one header."""
    options = AmalgamateOptions.load_from_file(config_path) if config_path else AmalgamateOptions()
    overrides = {"namespace": namespace, "guard": guard, "master_include": master_include}
    options = options.model_copy(update={k: v for k, v in overrides.items() if v is not None})
    try:
        result = collect_files(root, directory_resolver(base_dir), options)
        text = render_amalgamation(result, options)
    except (ApiportError, FileNotFoundError) as e:
        raise click.ClickException(str(e)) from e
    if output is None:
        click.echo(text, nl=False)
    else:
        output.write_text(text)
    Console().done(f"Amalgamated {len(result.files)} file(s)")


if __name__ == "__main__":
    cli()
