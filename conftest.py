"""Root conftest: make src/weatherstack importable from a plain checkout."""

import sys
from pathlib import Path

SRC_DIR = Path(__file__).parent / "src"

# An editable install already provides this; a bare checkout does not.
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))
