"""
State ids of action chain states.

Every state generated for an action is named

    mgr_actionchain_<chainId>_action_<actionId>_chunk_<chunk>

so that state results reported by the minion can be mapped back to the
action chain, the action and the chunk file that produced them.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

ACTION_STATE_ID_PREFIX = "mgr_actionchain_"
ACTION_STATE_ID_ACTION_PREFIX = "_action_"
ACTION_STATE_ID_CHUNK_PREFIX = "_chunk_"

# Either a bare state id or a Salt return key: "<mod>_|-<id>_|-<name>_|-<func>"
ACTION_STATE_PATTERN = re.compile(
    r"(?:^|\|-)" + ACTION_STATE_ID_PREFIX + r"(\d+)"
    + ACTION_STATE_ID_ACTION_PREFIX + r"(\d+)"
    + ACTION_STATE_ID_CHUNK_PREFIX + r"(\d+)"
)

_MAX_ID = 2 ** 63 - 1
_MAX_CHUNK = 2 ** 31 - 1

log = logging.getLogger("ActionChain")


def create_state_id(action_chain_id: int, action_id: int) -> str:
    """State id for an action, without the chunk suffix added by the planner."""
    return f"{ACTION_STATE_ID_PREFIX}{action_chain_id}{ACTION_STATE_ID_ACTION_PREFIX}{action_id}"


def chunk_suffix(chunk: int) -> str:
    return f"{ACTION_STATE_ID_CHUNK_PREFIX}{chunk}"


@dataclass(frozen=True)
class ActionChainStateId:
    action_chain_id: int
    action_id: int
    chunk: int

    @property
    def state_id(self) -> str:
        return create_state_id(self.action_chain_id, self.action_id) + chunk_suffix(self.chunk)


def parse_state_id(state_id: str) -> Optional[ActionChainStateId]:
    """
    Decode an action chain state id.

    Returns None for anything that is not an action chain state id,
    including ids whose numbers are out of range.
    """
    if not isinstance(state_id, str):
        return None
    m = ACTION_STATE_PATTERN.search(state_id)
    if m is None:
        return None

    chain_id, action_id, chunk = (int(g) for g in m.groups())
    if chain_id > _MAX_ID or action_id > _MAX_ID or chunk > _MAX_CHUNK:
        log.error("Error parsing action chain state id: %s", state_id)
        return None
    return ActionChainStateId(chain_id, action_id, chunk)
