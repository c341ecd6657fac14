# chaintools/states/schema.py

from __future__ import annotations

from typing import Any, Dict

from chaintools.states.types import STATE_KINDS


def validate_state_dict(d: Dict[str, Any]) -> None:
    """
    Structural validation for state declarations in a chain document.

    This validates the *serialized* representation, not the dataclasses.
    """

    if not isinstance(d, dict):
        raise ValueError("State declaration must be a dict")

    kind = d.get("kind")
    if kind is None:
        raise ValueError("Missing state field: 'kind'")
    if kind not in STATE_KINDS:
        raise ValueError(
            f"Unknown state kind '{kind}'. Choose one of {sorted(STATE_KINDS)}"
        )

    # -------------------------
    # Shared optional fields
    # -------------------------
    if "id" in d and not isinstance(d["id"], str):
        raise ValueError("id must be a string")

    if d.get("action_id") is not None:
        if kind not in ("module_run", "system_reboot"):
            raise ValueError(f"{kind} states cannot carry an action_id")
        if isinstance(d["action_id"], bool) or not isinstance(d["action_id"], int):
            raise ValueError("action_id must be an int")

    # -------------------------
    # Per-kind fields
    # -------------------------
    if kind == "state":
        if "id" not in d:
            raise ValueError("state requires an 'id'")
        body = d.get("body")
        if not isinstance(body, dict) or not body:
            raise ValueError("state.body must be a non-empty dict")

    elif kind == "module_run":
        if not isinstance(d.get("name"), str):
            raise ValueError("module_run.name must be a string")
        if "id" not in d and d.get("action_id") is None:
            raise ValueError("module_run requires an 'id' or an 'action_id'")
        if "args" in d and not isinstance(d["args"], dict):
            raise ValueError("module_run.args must be a dict")
        if d.get("kwargs") is not None and not isinstance(d["kwargs"], dict):
            raise ValueError("module_run.kwargs must be a dict or null")

    elif kind == "pkg_installed":
        pkgs = d.get("packages")
        if not isinstance(pkgs, dict):
            raise ValueError("pkg_installed.packages must be a dict")

    elif kind == "patch_installed":
        patches = d.get("patches")
        if not isinstance(patches, list) or not all(isinstance(p, str) for p in patches):
            raise ValueError("patch_installed.patches must be a list of strings")

    elif kind == "system_reboot":
        minutes = d.get("minutes", 1)
        if isinstance(minutes, bool) or not isinstance(minutes, int) or minutes < 0:
            raise ValueError("system_reboot.minutes must be a non-negative int")
