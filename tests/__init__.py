"""Test package initialisation for GPS Quest."""

from pathlib import Path
import sys

# Ensure the repository root is importable when tests run from an isolated
# working directory. The project is a flat set of top-level modules such as
# ``quest_controller``, so the root has to be on ``sys.path``.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
