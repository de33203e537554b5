"""
Run mermaid-cli (``mmdc``) over the pending charts.

Assumes the configured command (``npx -p @mermaid-js/mermaid-cli mmdc`` by
default) can be run from the working folder.
"""

import logging
import subprocess
from collections.abc import Sequence
from contextlib import suppress
from pathlib import Path

from .cache import ChartCache, ChartRecord
from .errors import MermaidRenderError
from .settings import Settings

logger = logging.getLogger(__name__)

BATCH_STEM = "batch"


def mmdc_args(settings: Settings, src: Path, dst: Path, output_format: str) -> list[str]:
    return [
        *settings.command,
        "--quiet",
        "--backgroundColor",
        settings.background_color,
        "--cssFile",
        str(settings.theme_file),
        "--configFile",
        str(settings.mermaid_config_file),
        "--puppeteerConfigFile",
        str(settings.puppeteer_config_file),
        "--outputFormat",
        output_format,
        "--input",
        str(src),
        "--output",
        str(dst),
    ]


def mmdc(args: Sequence[str], cwd: Path) -> subprocess.CompletedProcess[str]:
    logger.debug("Running %s", " ".join(args))
    try:
        proc = subprocess.run(  # noqa: S603
            list(args),
            capture_output=True,
            encoding="utf-8",
            check=True,
            cwd=cwd,
        )
    except subprocess.CalledProcessError as e:
        raise MermaidRenderError(f"mmdc exited with status {e.returncode}", e.stderr or e.stdout or "") from e
    except OSError as e:
        raise MermaidRenderError(f"Unable to run {args[0]}: {e}") from e
    for stream in (proc.stdout, proc.stderr):
        if stream and stream.strip():
            logger.debug("mmdc: %s", stream.strip())
    return proc


def batch_source(records: Sequence[ChartRecord]) -> str:
    return "".join(f"```mermaid\n{record.chart.strip()}\n```\n\n" for record in records)


class Renderer:
    def __init__(self, settings: Settings, output_format: str | None = None) -> None:
        self.settings = settings
        self.output_format = output_format or settings.output_format

    @property
    def folder(self) -> Path:
        return self.settings.working_folder

    def render_pending(self, cache: ChartCache) -> list[ChartRecord]:
        """Render every chart still waiting for output.

        Failures are recorded on the charts rather than raised.
        """
        pending = cache.pending()
        if not pending:
            return pending
        if self.settings.batch:
            self.render_batch(pending)
        else:
            for record in pending:
                self.render_one(record)
        return pending

    def render_one(self, record: ChartRecord) -> None:
        src = self.folder / f"{record.identifier}.mmd"
        dst = self.folder / f"{record.identifier}.{self.output_format}"
        try:
            src.write_text(record.chart, encoding="utf-8")
            mmdc(mmdc_args(self.settings, src, dst, self.output_format), self.folder)
            if not dst.is_file():
                raise MermaidRenderError(f"mmdc produced no output for chart {record.identifier}")
        except (MermaidRenderError, OSError) as e:
            record.failed(e)
            return
        finally:
            with suppress(OSError):
                src.unlink(missing_ok=True)
        record.rendered(dst)

    def render_batch(self, records: Sequence[ChartRecord]) -> None:
        """One mmdc call for all ``records``; any failure fails every one of them.

        @mermaid-js/mermaid-cli 10.x renders each mermaid fence of a markdown input to
        ``<output stem>-<n>.<ext>`` next to ``<output>``, counting from 1 in document
        order. Older releases without markdown input are not supported in batch mode.
        """
        src = self.folder / f"{BATCH_STEM}.md"
        dst = self.folder / f"{BATCH_STEM}.out.md"
        logger.debug("Rendering %d mermaid chart(s) in one batch", len(records))
        try:
            src.write_text(batch_source(records), encoding="utf-8")
            mmdc(mmdc_args(self.settings, src, dst, self.output_format), self.folder)
        except (MermaidRenderError, OSError) as e:
            for record in records:
                record.failed(e)
            return
        finally:
            for path in (src, dst):
                with suppress(OSError):
                    path.unlink(missing_ok=True)

        for n, record in enumerate(records, start=1):
            image = self.folder / f"{dst.stem}-{n}.{self.output_format}"
            if not image.is_file():
                record.failed(MermaidRenderError(f"mmdc produced no output for chart {record.identifier}"))
                continue
            record.rendered(image.replace(self.folder / f"{record.identifier}.{self.output_format}"))
