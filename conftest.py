# Ensure '<repo root>' is on sys.path so 'import moveup' works without an
# editable install.
from pathlib import Path
import sys

_REPO_ROOT = Path(__file__).resolve().parent
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))
