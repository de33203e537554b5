class MermaidError(RuntimeError):
    """Base class for failures while turning a mermaid block into a figure."""


class MermaidRenderError(MermaidError):
    def __init__(self, message: str, stderr: str = "") -> None:
        super().__init__(message)
        self.stderr = stderr

    def __str__(self) -> str:
        if self.stderr.strip():
            return f"{self.args[0]}:\n    " + "\n    ".join(self.stderr.strip().splitlines())
        return self.args[0]


class ChartNotFoundError(MermaidError):
    pass
