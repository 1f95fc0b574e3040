"""
Command-line interface for VC Disclosure.

Usage:
    vc-disclose sign credential.json --key-pair key.json --documents docs.json
    vc-disclose derive signed.json reveal.json --documents docs.json
    vc-disclose verify derived.json --documents docs.json
    cat derived.json | vc-disclose verify -

The proof engine is loaded from a `module:attribute` path given with
--engine or VC_DISCLOSURE_ENGINE; the attribute is called without
arguments to build the engine.
"""

from __future__ import annotations

import importlib
import json
import logging
import sys
from pathlib import Path
from typing import Any

import base58
import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from vc_disclosure.engine import EngineTimeoutError, ProofEngine
from vc_disclosure.resolver import DocumentResolutionError, DocumentResolver
from vc_disclosure.reveal import RevealMismatchError
from vc_disclosure.suite import (
    BbsBlsSignature2020,
    BbsBlsSignatureProof2020,
    ProofVerificationResult,
    UnsupportedProofType,
)


console = Console()
err_console = Console(stderr=True)


def format_result(result: ProofVerificationResult) -> None:
    """Format and print verification result."""
    if result.verified:
        status_icon = "[bold green]VERIFIED[/]"
        panel_style = "green"
    else:
        status_icon = "[bold red]REJECTED[/]"
        panel_style = "red"

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Field", style="dim")
    table.add_column("Value")

    table.add_row("Status", status_icon)
    table.add_row("Proof Type", result.proof_type)
    table.add_row("Verification Method", result.verification_method)

    if result.reveal_indices:
        table.add_row("Revealed Messages", ", ".join(str(i) for i in result.reveal_indices))
    for triple in result.range_triples:
        table.add_row(
            "Range Predicate",
            f"message {triple.message_index} in [{triple.min}, {triple.max}]",
        )

    if result.reason:
        table.add_row("Reason", result.reason.value)
    if result.error:
        table.add_row("Error", f"[red]{result.error}[/]")

    console.print(Panel(table, title="Verification Result", border_style=panel_style))


def load_json(source: str) -> Any:
    """Load JSON from a file path or "-" for stdin."""
    if source == "-":
        return json.loads(sys.stdin.read())

    path = Path(source)
    if not path.exists():
        raise click.ClickException(f"File not found: {source}")

    with path.open() as f:
        return json.load(f)


def load_engine(path: str | None) -> ProofEngine:
    """Build a proof engine from a `module:attribute` path."""
    if not path:
        raise click.UsageError("No proof engine configured; pass --engine or set VC_DISCLOSURE_ENGINE")
    module_name, _, attribute = path.partition(":")
    if not attribute:
        raise click.UsageError(f"Engine path must look like module:attribute, got {path!r}")
    try:
        factory = getattr(importlib.import_module(module_name), attribute)
    except (ImportError, AttributeError) as e:
        raise click.UsageError(f"Cannot load proof engine {path}: {e}") from e
    return factory()


def build_resolver(ctx: click.Context) -> DocumentResolver:
    options = ctx.obj
    documents: dict[str, Any] = {}
    for source in options["documents"]:
        data = load_json(source)
        if not isinstance(data, dict):
            raise click.ClickException(f"{source} must hold a JSON object mapping IRIs to documents")
        documents.update(data)
    return DocumentResolver(
        documents=documents,
        allow_remote=options["allow_remote"],
        timeout=options["timeout"],
        verify_ssl=not options["no_ssl_verify"],
    )


def write_output(data: Any, output: str | None) -> None:
    text = json.dumps(data, indent=2)
    if output:
        Path(output).write_text(text + "\n")
    else:
        click.echo(text)


@click.group()
@click.option(
    "--engine",
    "engine_path",
    envvar="VC_DISCLOSURE_ENGINE",
    help="Proof engine factory as module:attribute",
)
@click.option(
    "--documents",
    multiple=True,
    type=click.Path(dir_okay=False),
    help="JSON file mapping IRIs to documents (repeatable)",
)
@click.option(
    "--allow-remote",
    is_flag=True,
    help="Fetch unknown did:web and https documents over the network",
)
@click.option(
    "--no-ssl-verify",
    is_flag=True,
    help="Disable SSL certificate verification",
)
@click.option(
    "--timeout",
    type=float,
    default=30.0,
    help="HTTP request timeout in seconds",
)
@click.option(
    "--engine-timeout",
    type=float,
    default=None,
    help="Time bound in seconds for each proof engine call",
)
@click.option("-v", "--verbose", is_flag=True, help="Log each derivation and verification step")
@click.version_option(package_name="vc-disclosure")
@click.pass_context
def main(
    ctx: click.Context,
    engine_path: str | None,
    documents: tuple[str, ...],
    allow_remote: bool,
    no_ssl_verify: bool,
    timeout: float,
    engine_timeout: float | None,
    verbose: bool,
) -> None:
    """Sign, derive and verify BBS+ selective disclosure credentials."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=err_console, show_path=False)],
        )
    ctx.obj = {
        "engine_path": engine_path,
        "documents": documents,
        "allow_remote": allow_remote,
        "no_ssl_verify": no_ssl_verify,
        "timeout": timeout,
        "engine_timeout": engine_timeout,
    }


@main.command()
@click.argument("credential_source")
@click.option(
    "--key-pair",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="JSON key pair with id, publicKeyBase58 and privateKeyBase58",
)
@click.option("--output", "-o", help="Write the signed credential to this file")
@click.pass_context
def sign(ctx: click.Context, credential_source: str, key_pair: str, output: str | None) -> None:
    """Sign CREDENTIAL_SOURCE with BbsBlsSignature2020."""
    try:
        credential = load_json(credential_source)
        keys = load_json(key_pair)
        suite = BbsBlsSignature2020(
            load_engine(ctx.obj["engine_path"]),
            resolver=build_resolver(ctx),
            engine_timeout=ctx.obj["engine_timeout"],
        )
        signed = suite.sign(
            credential,
            secret_key=base58.b58decode(keys["privateKeyBase58"]),
            public_key=base58.b58decode(keys["publicKeyBase58"]),
            verification_method=keys["id"],
        )
    except (json.JSONDecodeError, KeyError, ValueError) as e:
        err_console.print(f"[red]Error:[/] Invalid input: {e}")
        sys.exit(2)
    except (DocumentResolutionError, EngineTimeoutError) as e:
        err_console.print(f"[red]Error:[/] {e}")
        sys.exit(2)

    write_output(signed, output)


@main.command()
@click.argument("credential_source")
@click.argument("reveal_source")
@click.option("--nonce-hex", help="Use this nonce (hex) instead of a random one")
@click.option("--output", "-o", help="Write the derived credential to this file")
@click.pass_context
def derive(
    ctx: click.Context,
    credential_source: str,
    reveal_source: str,
    nonce_hex: str | None,
    output: str | None,
) -> None:
    """Derive a selective disclosure proof from a signed credential.

    REVEAL_SOURCE is a JSON-LD frame. credentialSubject values of the form
    range-<min>-<max> are proven to lie in [min, max] instead of revealed.
    """
    try:
        credential = load_json(credential_source)
        reveal_document = load_json(reveal_source)
        nonce = bytes.fromhex(nonce_hex) if nonce_hex else None
        suite = BbsBlsSignatureProof2020(
            load_engine(ctx.obj["engine_path"]),
            resolver=build_resolver(ctx),
            engine_timeout=ctx.obj["engine_timeout"],
        )
        derived = suite.derive_proof(credential, reveal_document, nonce=nonce)
    except (json.JSONDecodeError, ValueError) as e:
        err_console.print(f"[red]Error:[/] Invalid input: {e}")
        sys.exit(2)
    except (
        UnsupportedProofType,
        RevealMismatchError,
        DocumentResolutionError,
        EngineTimeoutError,
    ) as e:
        err_console.print(f"[red]Error:[/] {e}")
        sys.exit(2)

    write_output(derived.to_dict(), output)


@main.command()
@click.argument("source")
@click.option(
    "--json-output",
    is_flag=True,
    help="Output result as JSON",
)
@click.pass_context
def verify(ctx: click.Context, source: str, json_output: bool) -> None:
    """Verify a derived credential.

    SOURCE can be a file path or "-" to read from stdin.
    """
    try:
        credential = load_json(source)
        suite = BbsBlsSignatureProof2020(
            load_engine(ctx.obj["engine_path"]),
            resolver=build_resolver(ctx),
            engine_timeout=ctx.obj["engine_timeout"],
        )
        result = suite.verify_proof(credential)

    except json.JSONDecodeError as e:
        if json_output:
            console.print_json(data={"error": f"Invalid JSON: {e}"})
        else:
            err_console.print(f"[red]Error:[/] Invalid JSON: {e}")
        sys.exit(2)

    except EngineTimeoutError as e:
        if json_output:
            console.print_json(data={"error": str(e)})
        else:
            err_console.print(f"[red]Error:[/] {e}")
        sys.exit(2)

    if json_output:
        console.print_json(
            data={
                "status": result.status.value,
                "verified": result.verified,
                "proof_type": result.proof_type,
                "verification_method": result.verification_method,
                "reason": result.reason.value if result.reason else None,
                "error": result.error,
                "reveal_indices": result.reveal_indices,
                "range_triples": [t.as_tuple() for t in result.range_triples],
            }
        )
    else:
        format_result(result)

    sys.exit(0 if result.verified else 1)


if __name__ == "__main__":
    main()
