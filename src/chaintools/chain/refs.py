from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable, List

SALT_FS_PREFIX = "salt://"
ACTIONCHAIN_SLS_FOLDER = "actionchains"
ACTIONCHAIN_SLS_FILE_PREFIX = "actionchain_"
SSH_EXTRA_FILEREFS = "ssh_extra_filerefs"

# The grammar below matches what states/render.py emits; keep both in sync
# and cover changes with literal SLS fixtures in tests/test_refs.py.
SALT_FILE_REF = re.compile(r"(" + re.escape(SALT_FS_PREFIX) + r"|topfn:\s*)([a-zA-Z0-9_./]+)")
_EXTRA_FILEREFS_LINE = re.compile(re.escape(SSH_EXTRA_FILEREFS) + r".+")

log = logging.getLogger("ActionChain")


def _ref_in_list(refs: Iterable[str], file_ref: str) -> bool:
    return any(file_ref.startswith(r) for r in refs)


def is_chunk_ref(file_ref: str) -> bool:
    """True for actionchains/actionchain_<chain>_<machine>_<chunk>.sls"""
    return file_ref.startswith(f"{ACTIONCHAIN_SLS_FOLDER}/{ACTIONCHAIN_SLS_FILE_PREFIX}")


def is_kept_ref(file_ref: str, permanent_refs: Iterable[str] = ()) -> bool:
    """True for references cleanup must leave alone: permanent files and other chunks."""
    return _ref_in_list(permanent_refs, file_ref) or is_chunk_ref(file_ref)


def find_file_refs(sls_content: str, permanent_refs: Iterable[str] = ()) -> List[str]:
    """
    Collect the file references of one chunk that may be deleted with it.

    Skipped:
      - the rest of any ``ssh_extra_filerefs`` line (files of the whole chain)
      - references starting with one of ``permanent_refs``
      - other chunk files of the actionchains folder

    Matching restarts one character after the previous match start, so
    ``topfn: salt://x`` yields both ``salt`` and ``x``.
    """
    permanent_refs = list(permanent_refs)
    text = _EXTRA_FILEREFS_LINE.sub("", sls_content)

    res: List[str] = []
    start = 0
    while True:
        m = SALT_FILE_REF.search(text, start)
        if m is None:
            break
        start = m.start() + 1
        ref = m.group(2)
        if is_kept_ref(ref, permanent_refs):
            continue
        res.append(ref)
    return res


def find_file_refs_in(sls_file: Path, permanent_refs: Iterable[str] = ()) -> List[str]:
    """Like find_file_refs, reading ``sls_file``; unreadable files yield []."""
    try:
        content = Path(sls_file).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        log.error("Could not collect salt:// references from file %s: %s", sls_file, e)
        return []
    return find_file_refs(content, permanent_refs)
