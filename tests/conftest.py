"""Pytest bootstrap ensuring the in-repo kstat_mcp package is imported.

Without this, an older installed kstat-mcp in site-packages could be resolved first
when a single test file is run directly. Shared fixture helpers live here too.
"""

import os, sys

import pytest

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if REPO_ROOT not in sys.path:
    # Prepend so it wins over any site-packages installation
    sys.path.insert(0, REPO_ROOT)


@pytest.fixture
def write_tree(tmp_path):
    """Materialize {relative_path: content} as files under tmp_path; returns tmp_path."""
    def _write(files: dict, root=None):
        base = root or tmp_path
        for rel, content in files.items():
            p = base / rel
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_text(content)
        return base
    return _write
