from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class Action:
    id: int
    payload: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class ActionChain:
    """
    An action chain as stored by the caller.

    Only ``id`` is used here; the actions have already been turned into
    Salt states by the time a chain reaches the planner.
    """

    id: int
    actions: List[Action] = field(default_factory=list)


@dataclass(frozen=True)
class Endpoint:
    """
    A managed system the chain runs on.

    machine_id: stable id used in chunk file names
    minion_id: Salt minion id, used when a minion reports back
    push_mode: salt-ssh system without a resident salt-minion process
    """

    machine_id: str
    minion_id: str = ""
    push_mode: bool = False
