"""
Chunk planner for action chains.

Walks the states of one endpoint in order and cuts them into chunks.
A chunk ends after a reboot and around a salt-minion upgrade, because the
minion cannot go on executing the same state run afterwards. Every chunk
but the last ends with a call to ``mgractionchains.next`` which schedules
the following chunk on the minion.
"""

from __future__ import annotations

import copy
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from chaintools.chain.stateid import chunk_suffix
from chaintools.chain.types import Endpoint
from chaintools.errors import RequisiteError
from chaintools.states.types import (
    ModuleRun,
    PatchInstalled,
    PkgInstalled,
    StateDeclaration,
    SystemReboot,
)

PACKAGES_PKGINSTALL = "packages.pkginstall"
PACKAGES_PATCHINSTALL = "packages.patchinstall"
PARAM_PKGS = "param_pkgs"
PARAM_UPDATE_STACK_PATCHES = "param_update_stack_patches"
PARAM_REGULAR_PATCHES = "param_regular_patches"
PARAM_INCLUDE_SALT_UPGRADE = "include_salt_upgrade"
SALT_PACKAGE = "salt"

NEXT_CHUNK_STATE_ID = "schedule_next_chunk"
NEXT_CHUNK_FUNCTION = "mgractionchains.next"
CLEAN_STATE_ID = "clean_action_chain_if_previous_failed"
CLEAN_FUNCTION = "mgractionchains.clean"

Chunk = List[StateDeclaration]
RequisiteRef = Tuple[str, str]


class Split(Enum):
    NONE = "none"
    PLAIN = "plain"
    AGENT_UPGRADE = "agent_upgrade"


def endpoint_push_mode(endpoint: Endpoint) -> bool:
    return endpoint.push_mode


# ---------------------------------------------------------------------------
# Split rules
# ---------------------------------------------------------------------------

def is_salt_upgrade(state: StateDeclaration) -> bool:
    """
    True for package installs whose ``param_pkgs`` mapping names ``salt`` and for
    patch installs flagged with ``include_salt_upgrade``.
    """
    if state.kind != ModuleRun.kind:
        return False
    mods = state.mods()
    if mods is None or state.kwargs is None:
        return False

    pillar = state.pillar()
    if PACKAGES_PKGINSTALL in mods:
        pkgs = pillar.get(PARAM_PKGS)
        return isinstance(pkgs, dict) and SALT_PACKAGE in pkgs
    if PACKAGES_PATCHINSTALL in mods:
        return PARAM_INCLUDE_SALT_UPGRADE in pillar
    return False


def classify_split(
    state: StateDeclaration,
    endpoint: Endpoint,
    is_push_mode: Callable[[Endpoint], bool] = endpoint_push_mode,
) -> Split:
    if state.kind == ModuleRun.kind:
        mods = state.mods() or ""
        # salt-ssh systems have no salt-minion process to replace
        if PACKAGES_PKGINSTALL in mods and is_salt_upgrade(state) and not is_push_mode(endpoint):
            return Split.AGENT_UPGRADE
        if PACKAGES_PATCHINSTALL in mods and is_salt_upgrade(state):
            return Split.AGENT_UPGRADE
        if state.name.lower() == "system.reboot":
            return Split.PLAIN
        return Split.NONE
    if state.kind == SystemReboot.kind:
        return Split.PLAIN
    return Split.NONE


def must_split(
    state: StateDeclaration,
    endpoint: Endpoint,
    is_push_mode: Callable[[Endpoint], bool] = endpoint_push_mode,
) -> bool:
    return classify_split(state, endpoint, is_push_mode) is not Split.NONE


# ---------------------------------------------------------------------------
# Requisites
# ---------------------------------------------------------------------------

def requisite_ref(chunk: Sequence[StateDeclaration]) -> Optional[RequisiteRef]:
    """
    ``(module, state id)`` of the last state in ``chunk``, for use in a
    ``require``/``onfail`` list. None for an empty chunk.
    """
    if not chunk:
        return None

    data = chunk[-1].data()
    if not data:
        raise RequisiteError("Could not get Salt requisite reference for an empty state")
    state_id, body = next(iter(data.items()))
    if not isinstance(body, dict) or not body:
        raise RequisiteError(f"Could not get Salt requisite reference for {state_id}")

    function = next(iter(body))
    parts = function.split(".")
    if len(parts) != 2 or not all(parts):
        raise RequisiteError(f"Could not get Salt requisite reference for {function}")
    return parts[0], state_id


# ---------------------------------------------------------------------------
# Control states
# ---------------------------------------------------------------------------

def end_chunk_state(
    action_chain_id: int,
    chunk: int,
    next_action_id: Optional[int],
    last_ref: Optional[RequisiteRef],
    extra_filerefs: Optional[str],
) -> ModuleRun:
    """Schedule chunk ``chunk + 1`` once ``last_ref`` succeeded."""
    args: Dict[str, Any] = {
        "actionchain_id": action_chain_id,
        "chunk": chunk + 1,
    }
    if next_action_id is not None:
        args["next_action_id"] = next_action_id
    if extra_filerefs:
        args["ssh_extra_filerefs"] = extra_filerefs

    mod_run = ModuleRun(id=NEXT_CHUNK_STATE_ID, name=NEXT_CHUNK_FUNCTION, args=args)
    if last_ref is not None:
        mod_run.add_require(*last_ref)
    return mod_run


def stop_if_previous_failed(last_ref: Optional[RequisiteRef]) -> ModuleRun:
    """Clean up the whole chain on the minion if ``last_ref`` failed."""
    args: Dict[str, Any] = {}
    if last_ref is not None:
        module, state_id = last_ref
        args["onfail"] = [{module: state_id}]
    return ModuleRun(id=CLEAN_STATE_ID, name=CLEAN_FUNCTION, args=args)


def check_salt_upgrade_state(state: ModuleRun) -> StateDeclaration:
    """
    Re-express a salt upgrade as pkg.installed / pkg.patch_installed.

    Runs first in the chunk after the upgrade, so a minion that was
    restarted in the middle of the upgrade confirms the result again.
    """
    mods = state.mods() or ""
    pillar = state.pillar()

    if PACKAGES_PKGINSTALL in mods:
        pkg_installed = PkgInstalled()
        for name, version in (pillar.get(PARAM_PKGS) or {}).items():
            pkg_installed.add_package(name, None if version is None else str(version))
        return pkg_installed

    patch_installed = PatchInstalled()
    for patch in pillar.get(PARAM_UPDATE_STACK_PATCHES) or []:
        patch_installed.add_patch(patch)
    for patch in pillar.get(PARAM_REGULAR_PATCHES) or []:
        patch_installed.add_patch(patch)
    return patch_installed


def next_action_id(states: Sequence[StateDeclaration], pos: int) -> Optional[int]:
    if pos + 1 < len(states):
        state = states[pos + 1]
        if state.carries_action:
            return state.action_id
    return None


# ---------------------------------------------------------------------------
# Planner
# ---------------------------------------------------------------------------

class ChunkPlanner:
    """
    Cuts the states of one endpoint into chunks.

    ``plan`` mutates the given states (chunk suffix on ids, requisites) and
    returns the chunks in execution order; chunk N is ``chunks[N - 1]``.
    Nothing is written here: a malformed requisite target raises before any
    chunk file exists.
    """

    def __init__(
        self,
        action_chain_id: int,
        endpoint: Endpoint,
        extra_filerefs: Optional[str] = None,
        is_push_mode: Callable[[Endpoint], bool] = endpoint_push_mode,
    ) -> None:
        self.action_chain_id = action_chain_id
        self.endpoint = endpoint
        self.extra_filerefs = extra_filerefs
        self.is_push_mode = is_push_mode

    def _end_chunk(self, chunk_no: int, next_id: Optional[int], chunk: Chunk) -> ModuleRun:
        return end_chunk_state(
            self.action_chain_id, chunk_no, next_id, requisite_ref(chunk), self.extra_filerefs
        )

    def plan(self, states: Sequence[StateDeclaration]) -> List[Chunk]:
        chunks: List[Chunk] = []
        chunk_no = 1
        current: Chunk = []

        for i, state in enumerate(states):
            split = classify_split(state, self.endpoint, self.is_push_mode)

            # The upgrade must start a chunk of its own.
            if split is Split.AGENT_UPGRADE and current:
                own_action = state.action_id if state.carries_action else None
                current.append(self._end_chunk(chunk_no, own_action, current))
                chunks.append(current)
                current = []
                chunk_no += 1

            if state.orderable:
                ref = requisite_ref(current)
                if ref is not None:
                    state.add_require(*ref)
            if state.identifiable:
                state.id = state.id + chunk_suffix(chunk_no)

            next_id = next_action_id(states, i)

            if split is Split.AGENT_UPGRADE:
                # Schedule the verification chunk before the minion goes away.
                current.append(self._end_chunk(chunk_no, next_id, current))
                current.append(state)
                current.append(stop_if_previous_failed(requisite_ref(current)))
                chunks.append(current)
                chunk_no += 1
                current = [check_salt_upgrade_state(state)]

            elif split is Split.PLAIN:
                current.append(state)
                if i < len(states) - 1:
                    current.append(self._end_chunk(chunk_no, next_id, current))
                chunks.append(current)
                chunk_no += 1
                current = []

            else:
                current.append(state)

        if current:
            chunks.append(current)
        return chunks

    def count_chunks(self, states: Sequence[StateDeclaration]) -> int:
        """Number of chunks ``plan`` would produce; ``states`` are left untouched."""
        return len(self.plan(copy.deepcopy(list(states))))
