from __future__ import annotations

import json
from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError

from chaintools.chain.generator import ActionChainGenerator
from chaintools.chain.load import (
    document_chain,
    document_endpoint,
    document_states,
    load_chain_document,
)
from chaintools.chain.refs import find_file_refs_in
from chaintools.chain.stateid import parse_state_id
from chaintools.chain.types import Endpoint
from chaintools.config import GeneratorConfig
from chaintools.errors import ActionChainError
from chaintools.schemas.models import ChunkReport, StateIdRecord
from chaintools.states.render import Top

app = typer.Typer(help="chain-tools CLI")
chain_app = typer.Typer(help="Generate and clean up action chain chunk files")
app.add_typer(chain_app, name="chain")


# -----------------------------
# Helpers
# -----------------------------

def _load_config(
    config: Optional[Path],
    root: Optional[Path],
    skip_set_owner: Optional[bool] = None,
) -> GeneratorConfig:
    cfg = GeneratorConfig.from_yaml(config) if config else GeneratorConfig()
    if root is not None:
        cfg.states_root = root.expanduser().resolve()
    if skip_set_owner is not None:
        cfg.skip_set_owner = skip_set_owner
    return cfg


def _load_document(chain: Path):
    try:
        return load_chain_document(chain)
    except FileNotFoundError:
        raise typer.BadParameter(f"{chain} not found")
    except (ValidationError, ValueError) as e:
        raise typer.BadParameter(str(e))


def _fixed_endpoint(machine_id: str):
    # The CLI is told the machine id directly; no inventory lookup.
    def _lookup(minion_id: str) -> Optional[Endpoint]:
        return Endpoint(machine_id=machine_id, minion_id=minion_id)
    return _lookup


# -----------------------------
# Generation
# -----------------------------

@chain_app.command("render")
def render(
    chain: Path = typer.Option(..., "--chain", "-c", help="Chain document (YAML/JSON)"),
    config: Optional[Path] = typer.Option(None, "--config", help="Generator config YAML"),
    root: Optional[Path] = typer.Option(None, "--root", "-r", help="Salt states root"),
    skip_set_owner: Optional[bool] = typer.Option(
        None, "--skip-set-owner/--set-owner", help="Do not chown the actionchains folder"
    ),
):
    """Write the chunk SLS files of a chain for one endpoint."""
    doc = _load_document(chain)
    try:
        states = document_states(doc)
    except ValueError as e:
        raise typer.BadParameter(str(e))

    cfg = _load_config(config, root, skip_set_owner)
    generator = ActionChainGenerator(cfg)
    endpoint = document_endpoint(doc)

    try:
        counts = generator.create_chunk_files(
            document_chain(doc), endpoint, states, extra_filerefs=doc.extra_filerefs
        )
    except ActionChainError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    chunks = counts[endpoint]
    report = ChunkReport(
        chain_id=doc.chain_id,
        machine_id=endpoint.machine_id,
        chunks=chunks,
        files=[str(p) for p in generator.chunk_files(doc.chain_id, endpoint, chunks)],
    )
    typer.echo(report.model_dump_json(indent=2))


@chain_app.command("count")
def count(
    chain: Path = typer.Option(..., "--chain", "-c", help="Chain document (YAML/JSON)"),
):
    """Print the number of chunks a chain would produce, without writing."""
    doc = _load_document(chain)
    try:
        states = document_states(doc)
        generator = ActionChainGenerator(GeneratorConfig())
        endpoint = document_endpoint(doc)
        counts = generator.chunks_per_endpoint(document_chain(doc), {endpoint: states})
    except ValueError as e:
        raise typer.BadParameter(str(e))
    typer.echo(json.dumps({endpoint.machine_id: counts[endpoint]}))


@chain_app.command("top")
def top(
    chain_id: int = typer.Option(..., "--chain-id"),
    action_id: int = typer.Option(..., "--action-id"),
    state: List[str] = typer.Option(..., "--state", "-s", help="State to apply (repeatable)"),
    target: str = typer.Option("*", "--target"),
    root: Optional[Path] = typer.Option(None, "--root", "-r", help="Salt states root"),
    config: Optional[Path] = typer.Option(None, "--config", help="Generator config YAML"),
    skip_set_owner: Optional[bool] = typer.Option(
        None, "--skip-set-owner/--set-owner", help="Do not chown the actionchains folder"
    ),
):
    """Write the top file of a salt-ssh highstate action and print its reference."""
    cfg = _load_config(config, root, skip_set_owner)
    generator = ActionChainGenerator(cfg)
    try:
        ref = generator.generate_top(chain_id, action_id, Top(states=list(state), target=target))
    except ActionChainError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    typer.echo(ref)


# -----------------------------
# Cleanup
# -----------------------------

@chain_app.command("clean")
def clean(
    chain_id: int = typer.Option(..., "--chain-id"),
    machine_id: str = typer.Option(..., "--machine-id"),
    minion_id: str = typer.Option("", "--minion-id"),
    chunk: Optional[int] = typer.Option(None, "--chunk", help="Finished chunk; all chunks if omitted"),
    failed: bool = typer.Option(False, "--failed", help="Chain failed: drop the remaining chunks too"),
    root: Optional[Path] = typer.Option(None, "--root", "-r", help="Salt states root"),
    config: Optional[Path] = typer.Option(None, "--config", help="Generator config YAML"),
):
    """Remove chunk files of a chain and the files they reference."""
    cfg = _load_config(config, root)
    generator = ActionChainGenerator(cfg, find_endpoint=_fixed_endpoint(machine_id))
    if chunk is None:
        endpoint = Endpoint(machine_id=machine_id, minion_id=minion_id)
        removed = generator.remove_files_for_endpoint(endpoint, chain_id)
    else:
        removed = generator.remove_chunk_files(chain_id, minion_id, chunk, failed)
    for p in removed:
        typer.echo(f"Removed {p}")
    typer.secho(f"Done. removed {len(removed)} file(s)", fg=typer.colors.GREEN)


@chain_app.command("clean-endpoint")
def clean_endpoint(
    machine_id: str = typer.Option(..., "--machine-id"),
    chain_id: Optional[int] = typer.Option(None, "--chain-id", help="Only this chain"),
    root: Optional[Path] = typer.Option(None, "--root", "-r", help="Salt states root"),
    config: Optional[Path] = typer.Option(None, "--config", help="Generator config YAML"),
):
    """Remove the chunk files of every chain (or one chain) of an endpoint."""
    cfg = _load_config(config, root)
    generator = ActionChainGenerator(cfg)
    removed = generator.remove_files_for_endpoint(Endpoint(machine_id=machine_id), chain_id)
    for p in removed:
        typer.echo(f"Removed {p}")
    typer.secho(f"Done. removed {len(removed)} file(s)", fg=typer.colors.GREEN)


# -----------------------------
# Inspection
# -----------------------------

@chain_app.command("parse-id")
def parse_id(state_id: str = typer.Argument(..., help="State id or Salt state return key")):
    """Decode an action chain state id into chain id, action id and chunk."""
    parsed = parse_state_id(state_id)
    if parsed is None:
        typer.secho(f"Not an action chain state id: {state_id}", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=1)
    rec = StateIdRecord(
        action_chain_id=parsed.action_chain_id,
        action_id=parsed.action_id,
        chunk=parsed.chunk,
    )
    typer.echo(rec.model_dump_json())


@chain_app.command("refs")
def refs(
    sls: Path = typer.Argument(..., help="Chunk SLS file"),
    config: Optional[Path] = typer.Option(None, "--config", help="Generator config YAML"),
):
    """List the file references that cleanup would delete with this chunk."""
    if not sls.is_file():
        raise typer.BadParameter(f"{sls} not found")
    cfg = _load_config(config, None)
    for ref in find_file_refs_in(sls, cfg.permanent_refs):
        typer.echo(ref)


if __name__ == "__main__":
    app()
