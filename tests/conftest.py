"""
Shared test configuration.

Adds both the project root and src/ to sys.path so that flat modules
(aggregation_engine, dashboard, log_store, ...) and the analytics/ and
pipeline/ packages import with plain `import module_name`.

This replaces a sys.path.insert() hack in every test file.
"""

import os
import sys

_project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
_src_dir = os.path.join(_project_root, "src")

if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

# src/ first so `import dashboard` resolves to src/dashboard.py
if _src_dir not in sys.path:
    sys.path.insert(0, _src_dir)
