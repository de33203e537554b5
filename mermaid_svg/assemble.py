import base64
import html
import logging
import re
from pathlib import Path

from bs4 import BeautifulSoup

from .cache import ChartRecord
from .errors import MermaidError
from .extract import ChartMeta
from .settings import Settings

logger = logging.getLogger(__name__)

PIXELS = re.compile(r"^\s*(?P<value>\d+(?:\.\d+)?)\s*(?:px)?\s*$", re.IGNORECASE)

MIME_TYPES = {"svg": "image/svg+xml", "png": "image/png", "pdf": "application/pdf"}


def pixels(value: str | None) -> str | None:
    """Return the number of a fixed pixel length, ``None`` for anything else (e.g. ``100%``)."""
    if value is None or not (match := PIXELS.match(value)):
        return None
    return match["value"]


def rewrite_svg(svg: str, alt: str | None = None, title: str | None = None) -> str:
    """Label the root ``<svg>`` and swap fixed dimensions for an aspect ratio."""
    soup = BeautifulSoup(svg, "html.parser")
    root = soup.find("svg")
    if root is None:
        raise MermaidError("Rendered chart holds no <svg> element")

    if alt:
        root["aria-label"] = html.unescape(alt)
    if title:
        root["title"] = html.unescape(title)

    width, height = pixels(root.get("width")), pixels(root.get("height"))
    if width is not None and height is not None:
        root["aspect-ratio"] = f"{width}/{height}"
        del root["width"]
        del root["height"]

    return str(soup)


def image_attributes(meta: ChartMeta, settings: Settings) -> str:
    attrs = ""
    if meta.alt:
        attrs += f' alt="{meta.alt}"'
    if meta.title:
        attrs += f' title="{meta.title}"'
    if settings.img_attributes.strip():
        attrs += f" {settings.img_attributes.strip()}"
    return attrs


def load_image(record: ChartRecord) -> bytes:
    """Read the rendered file of ``record`` into it and delete the temporary file."""
    if record.data is not None:
        return record.data
    if record.output is None:
        raise MermaidError(f"Chart {record.identifier} has not been rendered")
    path = record.output
    try:
        data = path.read_bytes()
    finally:
        path.unlink(missing_ok=True)
    record.assembled(data)
    return data


def image_file(record: ChartRecord, settings: Settings) -> Path:
    """The image of ``record`` in the output folder, written again if it went missing."""
    data = load_image(record)
    target = settings.output_folder / f"{record.identifier}.{record.format}"
    if not target.is_file():
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
    return target


def image_markup(record: ChartRecord, meta: ChartMeta, settings: Settings) -> str:
    if not settings.inline:
        name = image_file(record, settings).name
        return f'<img src="{settings.url_prefix}{name}"{image_attributes(meta, settings)}>'

    data = load_image(record)
    if record.format == "svg":
        return rewrite_svg(data.decode("utf-8"), alt=meta.alt, title=meta.title)
    encoded = base64.b64encode(data).decode("ascii")
    return f'<img src="data:{MIME_TYPES[record.format]};base64,{encoded}"{image_attributes(meta, settings)}>'  # pyright: ignore[reportArgumentType]


def figure(meta: ChartMeta, markup: str, identifier: str = "") -> str:
    ident = f' id="{html.escape(identifier)}"' if identifier else ""
    caption = f"<figcaption>{meta.caption}</figcaption>" if meta.caption else ""
    return f'<figure{ident} class="mermaid">{markup}{caption}</figure>'


def fallback(definition: str) -> str:
    return f'<pre class="mermaid">{html.escape(definition, quote=False)}</pre>'


def assemble(record: ChartRecord, meta: ChartMeta, settings: Settings) -> str:
    """Image markup for one block showing ``record``, labelled with ``meta``.

    Raises the failure recorded by the renderer for failed charts.
    """
    if record.error is not None:
        raise record.error
    try:
        return image_markup(record, meta, settings)
    except (MermaidError, OSError) as e:
        record.failed(e)
        raise
