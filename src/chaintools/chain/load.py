from __future__ import annotations

from pathlib import Path
from typing import List

import yaml

from chaintools.chain.types import ActionChain, Endpoint
from chaintools.schemas.models import ChainDocument
from chaintools.states.factory import state_from_dict
from chaintools.states.types import StateDeclaration


def load_chain_document(path: Path) -> ChainDocument:
    """
    Load a chain document (YAML or JSON, JSON being a subset):

    chain_id: 12
    endpoint:
      machine_id: 3c2a...
      minion_id: web01.example.com
      push_mode: false
    extra_filerefs: salt://scripts/a.sh,salt://scripts/b.sh
    states:
      - kind: module_run
        action_id: 101
        name: state.apply
        args: {mods: [packages.pkginstall]}
        kwargs: {pillar: {param_pkgs: {salt: "3006.0"}}}
      - kind: system_reboot
        action_id: 102
    """
    path = Path(path).expanduser().resolve()
    if not path.is_file():
        raise FileNotFoundError(path)

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ValueError(f"{path}: invalid YAML") from e

    if not isinstance(data, dict):
        raise ValueError(f"{path}: chain document must be a mapping at top level")
    return ChainDocument.model_validate(data)


def document_chain(doc: ChainDocument) -> ActionChain:
    return ActionChain(id=doc.chain_id)


def document_endpoint(doc: ChainDocument) -> Endpoint:
    return Endpoint(
        machine_id=doc.endpoint.machine_id,
        minion_id=doc.endpoint.minion_id,
        push_mode=doc.endpoint.push_mode,
    )


def document_states(doc: ChainDocument) -> List[StateDeclaration]:
    """Build fresh declarations; the planner mutates them, so never share."""
    states: List[StateDeclaration] = []
    for i, d in enumerate(doc.states):
        try:
            states.append(state_from_dict(d, chain_id=doc.chain_id))
        except ValueError as e:
            raise ValueError(f"states[{i}]: {e}") from e
    return states
