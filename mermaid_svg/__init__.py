from .cache import ChartCache, ChartRecord
from .errors import ChartNotFoundError, MermaidError, MermaidRenderError
from .mermaid import MermaidFilter, main, render_markdown
from .settings import Settings

__all__ = [
    "ChartCache",
    "ChartNotFoundError",
    "ChartRecord",
    "MermaidError",
    "MermaidFilter",
    "MermaidRenderError",
    "Settings",
    "main",
    "render_markdown",
]
