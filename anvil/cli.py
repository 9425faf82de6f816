"""
Anvil CLI - Command line interface for APS plans.

Commands:
- validate: Check a plan document's schema and hash
- hash: Compute (and optionally write) a plan's hash
- detect: Score a document against every registered dialect
- import: Parse dialect documents into a plan
- export: Render a plan as dialect documents
- schema: Print the JSON Schema of the plan document

Exit codes: 0 on success, 1 on validation or parse failure, 2 on hash mismatch.
"""

import json
import sys
from pathlib import Path
from typing import Dict, Optional, Tuple

import click

from anvil import __version__
from anvil.adapters.base import format_messages
from anvil.adapters.dialect import MarkdownDialectAdapter
from anvil.adapters.registry import AdapterRegistry, build_default_registry
from anvil.config import config
from anvil.engine.errors import CanonicalizationError
from anvil.engine.hashing import compute_plan_hash
from anvil.engine.validator import validate_aps_plan
from anvil.logging_utils import configure_logging
from anvil.models.adapter import AdapterOptions, ParseContext, ParseResult
from anvil.models.json_schema import get_json_schema_string
from anvil.models.validation import IssueCode, OutputFormat, ValidationOptions
from anvil.store.plan_store import PlanStore


EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_HASH_MISMATCH = 2


def read_text(path: str) -> str:
    with open(path, 'r', encoding='utf-8') as f:
        return f.read()


def read_json(path: str):
    """Load a JSON document, exiting with a failure code if it is unreadable."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        click.echo(f"✗ {path} is not valid JSON: {e}", err=True)
        sys.exit(EXIT_FAILURE)


def write_json(data, output: Optional[str]) -> None:
    text = json.dumps(data, indent=2, ensure_ascii=False)
    if output:
        Path(output).write_text(text + "\n", encoding='utf-8')
        click.echo(f"✓ Written to {output}")
    else:
        click.echo(text)


def print_messages(result: ParseResult) -> None:
    if result.warnings:
        click.echo("⚠ Warnings:", err=True)
        click.echo(format_messages(result.warnings), err=True)
    if result.errors:
        click.echo("✗ Errors:", err=True)
        click.echo(format_messages(result.errors), err=True)


def get_registry(ctx: click.Context) -> AdapterRegistry:
    return ctx.obj["registry"]


@click.group()
@click.version_option(version=__version__)
@click.option('--log-level', default=None, help='Log level (defaults to ANVIL_LOG_LEVEL or INFO)')
@click.pass_context
def cli(ctx: click.Context, log_level: Optional[str]):
    """Anvil - deterministic plan documents and dialect adapters"""
    configure_logging(level=log_level)
    ctx.ensure_object(dict)
    if "registry" not in ctx.obj:
        ctx.obj["registry"] = build_default_registry()


@cli.command()
@click.argument('plan_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--no-hash', is_flag=True, help='Skip hash verification')
@click.option('--lenient', is_flag=True, help='Check the hash even when the schema is invalid')
@click.option('--format', 'output_format', type=click.Choice(['cli', 'json']), default='cli')
def validate(plan_file: str, no_hash: bool, lenient: bool, output_format: str):
    """
    Validate a plan document (schema + hash)
    """
    data = read_json(plan_file)
    options = ValidationOptions(
        validate_hash=config.validate_hash and not no_hash,
        strict=not lenient,
        format=OutputFormat(output_format),
    )
    result = validate_aps_plan(data, options)

    if output_format == 'json':
        click.echo(result.model_dump_json(indent=2, exclude={"data"}))
    else:
        click.echo(result.summary)
        if result.formatted_errors:
            click.echo(result.formatted_errors)
        if result.has_code(IssueCode.HASH_MISMATCH):
            click.echo("✗ Hash mismatch: the plan was modified after it was hashed", err=True)

    if result.has_code(IssueCode.HASH_MISMATCH):
        sys.exit(EXIT_HASH_MISMATCH)
    sys.exit(EXIT_OK if result.valid else EXIT_FAILURE)


@cli.command(name='hash')
@click.argument('plan_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--write', is_flag=True, help='Store the computed hash in the file')
def hash_plan(plan_file: str, write: bool):
    """
    Compute the hash of a plan document
    """
    data = read_json(plan_file)
    if not isinstance(data, dict):
        click.echo("✗ A plan document must be a JSON object", err=True)
        sys.exit(EXIT_FAILURE)
    try:
        digest = compute_plan_hash(data)
    except CanonicalizationError as e:
        click.echo(f"✗ {e}", err=True)
        sys.exit(EXIT_FAILURE)

    click.echo(digest)
    if write:
        data["hash"] = digest
        write_json(data, plan_file)


@cli.command()
@click.argument('document', type=click.Path(exists=True, dir_okay=False))
@click.option('--min-confidence', type=click.IntRange(0, 100), default=None,
              help='Minimum confidence (defaults to ANVIL_DETECTION_MIN_CONFIDENCE)')
@click.pass_context
def detect(ctx: click.Context, document: str, min_confidence: Optional[int]):
    """
    Detect the dialect of a document
    """
    registry = get_registry(ctx)
    content = read_text(document)
    threshold = config.detection_min_confidence if min_confidence is None else min_confidence

    for adapter, detection in registry.detect_all(content):
        click.echo(f"{adapter.name}: {detection.confidence}% ({detection.reason})")

    best = registry.detect_adapter(content, threshold)
    if best is None:
        click.echo(f"✗ No adapter reached {threshold}% confidence", err=True)
        sys.exit(EXIT_FAILURE)
    click.echo(f"✓ Detected: {best[0].name}")


@cli.command(name='import')
@click.argument('documents', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option('--format', '-f', 'fmt', help='Dialect or format name (detected when omitted)')
@click.option('--output', '-o', type=click.Path(), help='Write the plan JSON to a file')
@click.option('--save', is_flag=True, help='Save the plan to the plan store')
@click.option('--author', help='Author recorded in provenance')
@click.option('--branch', help='Branch recorded in provenance')
@click.option('--commit', help='Commit recorded in provenance')
@click.option('--strict', is_flag=True, help='Treat warnings as errors')
@click.pass_context
def import_plan(ctx: click.Context, documents: Tuple[str, ...], fmt: Optional[str], output: Optional[str],
                save: bool, author: Optional[str], branch: Optional[str], commit: Optional[str], strict: bool):
    """
    Import dialect documents as an APS plan

    Several documents of one multi-document dialect (for example spec.md,
    plan.md and tasks.md) are combined into a single plan.
    """
    registry = get_registry(ctx)
    texts = [read_text(path) for path in documents]

    if fmt:
        adapter = registry.get_adapter_for_format(fmt)
        if adapter is None:
            click.echo(f"✗ Unsupported format: {fmt}", err=True)
            sys.exit(EXIT_FAILURE)
    else:
        detected = registry.detect_adapter(texts[0], config.detection_min_confidence)
        if detected is None:
            click.echo(f"✗ Could not detect the format of {documents[0]}; use --format", err=True)
            sys.exit(EXIT_FAILURE)
        adapter = detected[0]

    context = ParseContext(
        repository_path=str(Path.cwd()),
        author=author,
        branch=branch,
        commit=commit,
        source=config.default_source,
    )
    options = AdapterOptions(strict=strict)

    if len(texts) == 1:
        result = adapter.parse(texts[0], context, options)
    elif isinstance(adapter, MarkdownDialectAdapter):
        bundle: Dict[str, str] = {}
        for path, text in zip(documents, texts):
            kind = adapter.classify(text)
            if kind is None or kind in bundle:
                click.echo(f"✗ Cannot place {path} in a {adapter.name} bundle", err=True)
                sys.exit(EXIT_FAILURE)
            bundle[kind] = text
        result = adapter.parse_documents(bundle, context, options)
    else:
        click.echo(f"✗ Adapter {adapter.name} does not combine documents", err=True)
        sys.exit(EXIT_FAILURE)

    print_messages(result)
    if not result.success:
        click.echo(f"✗ Import failed ({adapter.name})", err=True)
        sys.exit(EXIT_FAILURE)

    plan = result.data
    write_json(plan.to_document(), output)
    if save:
        config.ensure_directories()
        path = PlanStore().save(plan)
        click.echo(f"✓ Saved {plan.id} to {path}")


@cli.command()
@click.argument('plan_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--format', '-f', 'fmt', required=True, help='Target dialect or format name')
@click.option('--output', '-o', type=click.Path(), help='Output file, or a directory with --all')
@click.option('--document', '-d', help='Which document of a multi-document dialect to write')
@click.option('--all', 'all_documents', is_flag=True, help='Write every document into the output directory')
@click.pass_context
def export(ctx: click.Context, plan_file: str, fmt: str, output: Optional[str], document: Optional[str],
           all_documents: bool):
    """
    Export an APS plan as dialect documents
    """
    registry = get_registry(ctx)
    adapter = registry.get_adapter_for_format(fmt)
    if adapter is None:
        click.echo(f"✗ Unsupported format: {fmt}", err=True)
        sys.exit(EXIT_FAILURE)

    data = read_json(plan_file)
    options = AdapterOptions(format_options={"document": document} if document else {})
    result = adapter.serialize(data, options)
    if result.warnings:
        click.echo("⚠ Warnings:", err=True)
        click.echo(format_messages(result.warnings), err=True)
    if not result.success:
        click.echo(format_messages(result.errors), err=True)
        click.echo(f"✗ Export failed ({adapter.name})", err=True)
        sys.exit(EXIT_FAILURE)

    if all_documents:
        target = Path(output or ".")
        target.mkdir(parents=True, exist_ok=True)
        for name, text in result.documents.items():
            path = target / f"{name}.md"
            path.write_text(text, encoding='utf-8')
            click.echo(f"✓ Written to {path}")
    elif output:
        Path(output).write_text(result.content, encoding='utf-8')
        click.echo(f"✓ Written to {output}")
    else:
        click.echo(result.content, nl=False)


@cli.command()
@click.option('--output', '-o', type=click.Path(dir_okay=False), help='Write the schema to a file')
@click.option('--compact', is_flag=True, help='Emit single-line JSON')
def schema(output: Optional[str], compact: bool):
    """
    Print the JSON Schema of the plan document
    """
    text = get_json_schema_string(pretty=not compact)
    if output:
        Path(output).write_text(text + "\n", encoding='utf-8')
        click.echo(f"✓ Written to {output}")
    else:
        click.echo(text)


def main():
    """Main entry point."""
    cli()


if __name__ == '__main__':
    main()
