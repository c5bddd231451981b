import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent

# photo_catalog lives under src/; tests/ holds the shared fakes module.
for extra in (ROOT / "src", ROOT / "tests"):
    if extra.exists() and str(extra) not in sys.path:
        sys.path.insert(0, str(extra))
