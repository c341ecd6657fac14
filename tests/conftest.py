import logging
from pathlib import Path

import pytest

# GeneratorConfig only attaches its console handler to a bare logger.
# Keep log lines out of CliRunner output; caplog still sees the records.
logging.getLogger("ActionChain").addHandler(logging.NullHandler())


@pytest.fixture
def root(tmp_path: Path) -> Path:
    """States root; resolved like GeneratorConfig resolves it."""
    return tmp_path.resolve()
