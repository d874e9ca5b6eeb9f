"""Put the repository root on sys.path for scripts run from _kerrlight_runs.

Python imports `sitecustomize` at startup when it is on sys.path, which is the
case for the directory of the script being run, so `import kerrlight` works
without installing the package.
"""

from __future__ import annotations

import os
import sys

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)
