import sys
from pathlib import Path


# backend/src holds the flat modules (config, models, services.*); tests/ holds the shared fakes.
ROOT = Path(__file__).resolve().parent
for path in (ROOT / "src", ROOT / "tests"):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))
