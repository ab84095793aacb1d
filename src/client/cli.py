"""
Command-line interface for ocap-ld capability verification.

Usage:
    ocapld keygen --identity did:example:alice
    ocapld sign capability.json --key alice.key.json --creator did:example:alice --purpose grant
    ocapld verify invocation.json --documents documents.json --target urn:res:1
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

import click

from ocapld.config import OcapConfig
from ocapld.verifier import OcapVerifier
from ..core.crypto import KeyPair, generate_signing_keypair, sign_document
from ..core.documents import ProofPurpose
from ..core.store import InMemoryDocumentStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S"
)

logger = logging.getLogger(__name__)

PURPOSES = {
    "grant": ProofPurpose.ROOT_GRANT,
    "delegation": ProofPurpose.DELEGATION,
    "invocation": ProofPurpose.INVOCATION,
}


def _read_json(path: str) -> Any:
    try:
        with open(path) as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise click.ClickException(f"{path} is not valid JSON: {e}")


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2))


@click.group()
@click.option("--config", "config_path", type=click.Path(exists=True), help="Config file (JSON or YAML)")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, config_path: Optional[str], debug: bool):
    """ocap-ld - Object capability chain verification"""
    ctx.ensure_object(dict)

    config = OcapConfig.load(Path(config_path)) if config_path else OcapConfig()
    if debug:
        config.log_level = "DEBUG"
    logging.getLogger().setLevel(getattr(logging, config.log_level.upper(), logging.INFO))

    ctx.obj["config"] = config


@cli.command()
@click.option("--identity", "-i", default=None, help="Identity to publish the key under")
@click.option("--output", "-o", type=click.Path(), default=None, help="Write key pair to file")
def keygen(identity: Optional[str], output: Optional[str]):
    """Generate an Ed25519 signing key pair."""
    keypair = generate_signing_keypair()
    data = keypair.model_dump()
    if identity:
        data["keyDocument"] = keypair.key_document(identity)

    if output:
        with open(output, "w") as f:
            json.dump(data, f, indent=2)
        click.echo(click.style(f"✓ Key pair written to {output}", fg="green"), err=True)
    else:
        _echo_json(data)


@cli.command()
@click.argument("document", type=click.Path(exists=True))
@click.option("--key", "-k", "key_path", type=click.Path(exists=True), required=True, help="Key pair file from keygen")
@click.option("--creator", "-c", required=True, help="Identity of the signer")
@click.option(
    "--purpose", "-p",
    type=click.Choice(sorted(PURPOSES)),
    required=True,
    help="Proof purpose",
)
@click.option("--capability", default=None, help="Capability id (invocation proofs)")
def sign(document: str, key_path: str, creator: str, purpose: str, capability: Optional[str]):
    """Append a signed proof to a document."""
    keypair = KeyPair.model_validate(_read_json(key_path))
    if purpose == "invocation" and not capability:
        raise click.UsageError("--capability is required for invocation proofs")

    signed = sign_document(
        _read_json(document),
        creator,
        keypair.private_key,
        PURPOSES[purpose],
        capability=capability,
    )
    _echo_json(signed)


@cli.command()
@click.argument("invocation", type=click.Path(exists=True))
@click.option("--documents", "-d", "documents_path", type=click.Path(exists=True), required=True,
              help="JSON list of capability, target and key documents")
@click.option("--target", "-t", required=True, help="Expected invocation target")
@click.option("--timeout", type=float, default=None, help="Verification timeout in seconds")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_context
def verify(ctx, invocation: str, documents_path: str, target: str, timeout: Optional[float], as_json: bool):
    """Verify an invocation against its capability chain."""
    documents = _read_json(documents_path)
    if not isinstance(documents, list):
        raise click.ClickException("--documents must contain a JSON list")

    try:
        store = InMemoryDocumentStore(documents)
    except ValueError as e:
        raise click.ClickException(str(e))

    verifier = OcapVerifier(store, config=ctx.obj["config"])
    result = verifier.verify_sync(_read_json(invocation), target, timeout=timeout)

    if as_json:
        _echo_json(result.to_dict())
    elif result:
        click.echo(click.style("✓ Invocation authorized", fg="green", bold=True))
        click.echo(f"  Capability: {result.capability_id}")
        click.echo(f"  Chain:      {' -> '.join(result.chain)}")
    else:
        click.echo(click.style(f"✗ Invocation denied: {result.reason.value}", fg="red", bold=True))
        click.echo(f"  {result.message}")

    sys.exit(0 if result else 1)


if __name__ == "__main__":
    cli()
