# repository/namespaces.py
from typing import Final

ROOT: Final[str] = "meetingnotes"

JOBS: Final[str] = f"{ROOT}:jobs"
