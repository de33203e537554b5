import argparse
import subprocess
import sys
from collections.abc import Callable
from itertools import chain
from pathlib import Path
from typing import Any, Concatenate, ParamSpec, TypeVar

import yaml

from .errors import MermaidError
from .mermaid import METADATA_KEY, configure_logging, render_markdown
from .settings import Settings, load_settings_file

A = ParamSpec("A")
R = TypeVar("R")


def from_namespace(func: Callable[Concatenate[A], R]) -> Callable[[argparse.Namespace], R]:
    def decorator(args: argparse.Namespace) -> R:
        return func(**vars(args))  # pyright: ignore[reportCallIssue]

    return decorator


def frontmatter(markdown: str) -> dict[str, Any]:
    MARKER = "---"
    markdown = markdown.strip()
    if markdown.startswith(MARKER):
        end = markdown.find(MARKER, len(MARKER))
        mapping = markdown[len(MARKER) : end if end != -1 else None]
        return yaml.safe_load(mapping) or {}
    return {}


def output_details(*extras: str) -> str:
    extra = "\n".join(map(str.strip, extras)).strip()
    if extra:
        extra = "\n    ".join(chain(":", extra.splitlines()))
    return extra


def build_output(inp: Path, out: Path) -> str:
    return f"mermaid-svg {inp} -> {out}"


def load_settings(input: Path, settings: Path | None) -> Settings:  # noqa: A002
    """File settings first, then the ``mermaid`` map of the front matter on top."""
    base = Settings.from_mapping(load_settings_file(settings)) if settings is not None else Settings()
    try:
        fm = frontmatter(input.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        print(
            ":\n    Unable to read frontmatter:\n        "
            + "\n        ".join(chain((str(e.__class__.__name__),), str(e).splitlines())),
            file=sys.stderr,
        )
        return base
    return base.merge(fm.get(METADATA_KEY) if isinstance(fm, dict) else None)


@from_namespace
def main_from_markdown(input: Path, output: Path | None, settings: Path | None, standalone: bool, **_) -> None:  # noqa: A002, ANN003, FBT001
    outfile = output or input.with_suffix(".html")
    print(build_output(input, outfile), end="", file=sys.stderr)

    config = load_settings(input, settings)
    configure_logging(config.verbose)
    # pandoc resolves relative resources against the current directory
    html = render_markdown(
        input.read_text(encoding="utf-8"),
        config,
        standalone=standalone,
        extra_args=["--resource-path", str(input.parent)],
    )
    outfile.write_text(html, encoding="utf-8")
    print(output_details(), file=sys.stderr)


def cli() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Render markdown to HTML with mermaid charts as inline SVG")

    def as_path(path: str) -> Path:
        return Path(path).resolve()

    parser.set_defaults(py_main=main_from_markdown)
    parser.add_argument("input", type=as_path, help="Input markdown file")
    parser.add_argument("-o", "--output", type=as_path, default=None, help="Output HTML file")
    parser.add_argument("-s", "--settings", type=as_path, default=None, help="YAML file with mermaid settings")
    parser.add_argument("--standalone", action="store_true", help="Write a complete HTML document")

    return parser


def main(argv: list[str] | None = None) -> None:
    args = cli().parse_args(argv)
    try:
        args.py_main(args)
    except (subprocess.CalledProcessError, OSError, MermaidError, ValueError) as e:
        print(output_details(str(e)), file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
