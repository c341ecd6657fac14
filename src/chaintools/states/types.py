from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Tuple

MODULE_RUN = "mgrcompat.module_run"


class StateDeclaration:
    """
    One Salt state as handed to the chunk planner.

    Variants form a closed set (see STATE_KINDS). Capabilities are class
    flags, checked explicitly by callers:

      identifiable: the planner may rewrite ``id`` (chunk suffix)
      orderable:    the planner may add ``require`` requisites
      carries_action: ``action_id`` names the action this state executes
    """

    kind: ClassVar[str] = ""
    identifiable: ClassVar[bool] = False
    orderable: ClassVar[bool] = False
    carries_action: ClassVar[bool] = False

    def data(self) -> Dict[str, Any]:
        raise NotImplementedError

    def add_require(self, module: str, state_id: str) -> None:
        if not self.orderable:
            raise TypeError(f"{self.kind} states do not accept requisites")
        self.requires.append((module, state_id))

    def _requisites(self) -> List[Dict[str, Any]]:
        requires = getattr(self, "requires", None)
        if not requires:
            return []
        return [{"require": [{mod: sid} for mod, sid in requires]}]


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------

@dataclass
class State(StateDeclaration):
    """Generic state: ``{id: {"mod.func": [args...]}}`` passed through as-is."""

    kind: ClassVar[str] = "state"

    id: str
    body: Dict[str, List[Any]]

    def data(self) -> Dict[str, Any]:
        return {self.id: self.body}


@dataclass
class ModuleRun(StateDeclaration):
    """
    Execution module call wrapped in a state.

    ``args`` are emitted one per list item, in order (``mods`` lives here);
    ``kwargs`` carries the ``pillar`` used by package and patch actions.
    """

    kind: ClassVar[str] = "module_run"
    identifiable: ClassVar[bool] = True
    orderable: ClassVar[bool] = True
    carries_action: ClassVar[bool] = True

    id: str
    name: str
    args: Dict[str, Any] = field(default_factory=dict)
    kwargs: Optional[Dict[str, Any]] = None
    action_id: Optional[int] = None
    requires: List[Tuple[str, str]] = field(default_factory=list)

    def mods(self) -> Optional[str]:
        """Return ``mods`` as a comma separated string, or None."""
        mods = self.args.get("mods")
        if isinstance(mods, str):
            return mods
        if isinstance(mods, (list, tuple)):
            return ",".join(str(m) for m in mods)
        return None

    def pillar(self) -> Dict[str, Any]:
        pillar = (self.kwargs or {}).get("pillar")
        return pillar if isinstance(pillar, dict) else {}

    def data(self) -> Dict[str, Any]:
        params: List[Dict[str, Any]] = [{"name": self.name}]
        params.extend({k: v} for k, v in self.args.items())
        if self.kwargs:
            params.append({"kwargs": self.kwargs})
        params.extend(self._requisites())
        return {self.id: {MODULE_RUN: params}}


@dataclass
class PkgInstalled(StateDeclaration):
    kind: ClassVar[str] = "pkg_installed"
    orderable: ClassVar[bool] = True

    # name -> version (None installs any version)
    packages: Dict[str, Optional[str]] = field(default_factory=dict)
    id: str = "mgr_pkg_installed"
    requires: List[Tuple[str, str]] = field(default_factory=list)

    def add_package(self, name: str, version: Optional[str] = None) -> None:
        self.packages[name] = version

    def data(self) -> Dict[str, Any]:
        pkgs = [{name: version} if version else name for name, version in self.packages.items()]
        params: List[Dict[str, Any]] = [{"refresh": True}, {"pkgs": pkgs}]
        params.extend(self._requisites())
        return {self.id: {"pkg.installed": params}}


@dataclass
class PatchInstalled(StateDeclaration):
    kind: ClassVar[str] = "patch_installed"
    orderable: ClassVar[bool] = True

    patches: List[str] = field(default_factory=list)
    id: str = "mgr_patch_installed"
    requires: List[Tuple[str, str]] = field(default_factory=list)

    def add_patch(self, patch: str) -> None:
        self.patches.append(patch)

    def data(self) -> Dict[str, Any]:
        params: List[Dict[str, Any]] = [{"refresh": True}, {"advisory_ids": list(self.patches)}]
        params.extend(self._requisites())
        return {self.id: {"pkg.patch_installed": params}}


@dataclass
class SystemReboot(StateDeclaration):
    kind: ClassVar[str] = "system_reboot"
    identifiable: ClassVar[bool] = True
    orderable: ClassVar[bool] = True
    carries_action: ClassVar[bool] = True

    id: str = "mgr_reboot"
    minutes: int = 1
    action_id: Optional[int] = None
    requires: List[Tuple[str, str]] = field(default_factory=list)

    def data(self) -> Dict[str, Any]:
        params: List[Dict[str, Any]] = [{"name": "system.reboot"}, {"at_time": self.minutes}]
        params.extend(self._requisites())
        return {self.id: {MODULE_RUN: params}}


STATE_KINDS = {
    cls.kind: cls
    for cls in (State, ModuleRun, PkgInstalled, PatchInstalled, SystemReboot)
}
