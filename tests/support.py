from __future__ import annotations

import html
import re
import subprocess
import tempfile
from collections.abc import Iterable
from pathlib import Path
from unittest import mock

from panflute import CodeBlock, MetaBool, MetaMap, MetaString

from mermaid_svg.settings import Settings

FENCE = re.compile(r"```mermaid\n(.*?)\n```", re.DOTALL)
SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg" id="chart" width="{width}" height="{height}" '
    'viewBox="0 0 800 600"><desc>{chart}</desc><g><rect x="0" y="0"></rect></g></svg>'
)


def flag(args: list[str], name: str) -> str:
    return args[args.index(name) + 1]


class FakeMmdc:
    """Stands in for ``subprocess.run`` and writes one image per chart like mmdc does."""

    def __init__(
        self,
        returncode: int = 0,
        width: str = "800",
        height: str = "600",
        skip: Iterable[int] = (),
    ) -> None:
        self.returncode = returncode
        self.width = width
        self.height = height
        self.skip = set(skip)
        self.calls: list[list[str]] = []
        self.sources: list[str] = []

    def charts(self) -> list[str]:
        charts: list[str] = []
        for source in self.sources:
            charts.extend(FENCE.findall(source) or [source])
        return charts

    def image(self, chart: str, fmt: str) -> bytes:
        if fmt == "svg":
            svg = SVG.format(width=self.width, height=self.height, chart=html.escape(chart.strip(), quote=False))
            return svg.encode("utf-8")
        return b"\x89PNG\r\n\x1a\n" + chart.encode("utf-8")

    def __call__(self, args, **kwargs) -> subprocess.CompletedProcess[str]:  # noqa: ANN001, ANN003
        args = list(args)
        self.calls.append(args)
        src = Path(flag(args, "--input"))
        dst = Path(flag(args, "--output"))
        fmt = flag(args, "--outputFormat")
        text = src.read_text(encoding="utf-8")
        self.sources.append(text)

        if self.returncode:
            raise subprocess.CalledProcessError(self.returncode, args, output="", stderr="Parse error on line 2")

        if src.suffix == ".md":
            for n, chart in enumerate(FENCE.findall(text), start=1):
                if n not in self.skip:
                    dst.with_name(f"{dst.stem}-{n}.{fmt}").write_bytes(self.image(chart, fmt))
            dst.write_text(text, encoding="utf-8")
        else:
            dst.write_bytes(self.image(text, fmt))
        return subprocess.CompletedProcess(args, 0, stdout="", stderr="")


def patch_mmdc(fake: FakeMmdc) -> mock._patch:
    return mock.patch("mermaid_svg.render.subprocess.run", side_effect=fake)


def mermaid_block(text: str, identifier: str = "", **attributes: str) -> CodeBlock:
    return CodeBlock(text, identifier=identifier, classes=["mermaid"], attributes=attributes)


def mermaid_meta(**settings: object) -> MetaMap:
    def meta(value: object) -> MetaBool | MetaString:
        return MetaBool(value) if isinstance(value, bool) else MetaString(str(value))

    return MetaMap(("mermaid", MetaMap(*((key.replace("_", "-"), meta(v)) for key, v in settings.items()))))


class TempFolders:
    """Working and output folders inside a throwaway directory."""

    def setUp(self) -> None:  # noqa: N802
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.settings = Settings(working_folder=self.root / "work", output_folder=self.root / "out")
        super().setUp()  # pyright: ignore[reportAttributeAccessIssue]

    def tearDown(self) -> None:  # noqa: N802
        super().tearDown()  # pyright: ignore[reportAttributeAccessIssue]
        self._tmp.cleanup()
