"""
chain-tools | config.py

Central configuration object for action chain generation.
Everything that writes or deletes chunk files receives an instance of it.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List
import logging
import yaml


STATES_ROOT = "/usr/share/susemanager/salt"

# Top files and control states shared by every chain; never deleted.
DEFAULT_TOPS = ["top.sls"]
ACTION_STATES_LIST = [
    "actionchains/startssh.sls",
    "actionchains/resumessh.sls",
    "actionchains/forcerestart.sls",
]


# ---------------------------------------------------------
# Utilities
# ---------------------------------------------------------
def _resolve(p: str | Path) -> Path:
    return Path(p).expanduser().resolve()


# ---------------------------------------------------------
# GeneratorConfig
# ---------------------------------------------------------
@dataclass
class GeneratorConfig:
    """
    Settings shared by the planner, the file writer and cleanup.

    Fields:
      states_root: root of the Salt file tree (salt:// references resolve here)
      skip_set_owner: do not chown the actionchains folder after creating it
      owner: account that must own the actionchains folder
      permanent_refs: reference prefixes cleanup must never delete
    """

    states_root: Path = Path(STATES_ROOT)
    skip_set_owner: bool = False
    owner: str = "tomcat"
    permanent_refs: List[str] = field(
        default_factory=lambda: [*DEFAULT_TOPS, *ACTION_STATES_LIST]
    )

    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("ActionChain"))

    def __post_init__(self):
        self.states_root = _resolve(self.states_root)
        self.permanent_refs = [str(r) for r in self.permanent_refs]

        # Logger formatting
        if not self.logger.handlers:
            h = logging.StreamHandler()
            h.setFormatter(logging.Formatter("[ActionChain] %(message)s"))
            self.logger.addHandler(h)
            self.logger.setLevel(logging.INFO)

    # -----------------------------------------------------
    # Export
    # -----------------------------------------------------
    def to_dict(self) -> Dict[str, Any]:
        return {
            "states_root": str(self.states_root),
            "skip_set_owner": self.skip_set_owner,
            "owner": self.owner,
            "permanent_refs": list(self.permanent_refs),
        }

    # -----------------------------------------------------
    @staticmethod
    def from_yaml(path: Path) -> "GeneratorConfig":
        """
        Build from a YAML mapping:

        states_root: /srv/susemanager/salt
        skip_set_owner: true
        owner: tomcat
        permanent_refs:
          - top.sls
        """
        data = yaml.safe_load(Path(path).read_text()) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file must be a mapping at top level: {path}")
        return GeneratorConfig(**data)
