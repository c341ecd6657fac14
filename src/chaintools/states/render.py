from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, TextIO

import yaml
from jinja2 import Environment, FileSystemLoader, StrictUndefined

from chaintools.states.types import StateDeclaration

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
TOP_TEMPLATE = "top.sls.j2"


@dataclass
class Top:
    """Salt top file assigning ``states`` to ``target`` in ``env``."""

    states: List[str] = field(default_factory=list)
    target: str = "*"
    env: str = "base"


def dump_state(state: StateDeclaration) -> str:
    """
    Serialize one declaration as a YAML SLS block.

    Lines are never wrapped: cleanup scans the output line by line, so
    a value must stay on the line of its key.
    """
    return yaml.safe_dump(
        state.data(),
        default_flow_style=False,
        sort_keys=False,
        width=float("inf"),
    )


def dump_states(states: Iterable[StateDeclaration], out: TextIO) -> None:
    """Write declarations to ``out`` in order, one YAML block each."""
    for state in states:
        out.write(dump_state(state))


def get_top_template_env() -> Environment:
    """
    Canonical Jinja environment for top files.
    Missing variables are errors.
    """
    return Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        undefined=StrictUndefined,
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )


def render_top(top: Top) -> str:
    tpl = get_top_template_env().get_template(TOP_TEMPLATE)
    return tpl.render(env=top.env, target=top.target, states=top.states)
