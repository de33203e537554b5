import tempfile
from pathlib import Path

PATH_BUILD = (Path(tempfile.gettempdir()) / "pandoc-mermaid-svg").resolve()
PATH_WORKING = PATH_BUILD / "work"
PATH_OUTPUT = PATH_BUILD / "out"
