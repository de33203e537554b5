"""
Pandoc filter turning code blocks with class "mermaid" into diagrams.

```mermaid {#fig-flow}
figcaption "Request flow"
alt Client calls the API
flowchart LR
    Client --> API
```

All charts of a document are collected before anything is rendered, so the
pending ones go through mmdc in a single call. HTML output gets a
``<figure>`` with the SVG inline (or an ``<img>``); other output formats get a
native Figure pointing at the rendered file.
"""

import html
import logging
import sys
from collections.abc import Mapping
from dataclasses import replace
from typing import Any

import panflute
from panflute import Caption, CodeBlock, Doc, Element, Figure, Image, Plain, RawBlock, run_filter

from .assemble import assemble, fallback, figure, image_file
from .cache import ChartCache, ChartRecord
from .extract import ChartMeta
from .render import Renderer
from .settings import Settings

logger = logging.getLogger(__name__)

METADATA_KEY = "mermaid"
HTML_FORMATS = frozenset(
    {"html", "html4", "html5", "revealjs", "slidy", "slideous", "dzslides", "s5", "epub", "epub2", "epub3"}
    | {"markdown", "gfm", "commonmark", "commonmark_x", "markdown_strict"}
)
PDF_FORMATS = frozenset({"latex", "beamer", "pdf", "context"})


def configure_logging(verbose: bool = False) -> None:  # noqa: FBT001, FBT002
    """Send the package's log records to stderr; stdout belongs to pandoc."""
    package = logging.getLogger(__package__)
    if not package.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(name)s: %(levelname)s: %(message)s"))
        package.addHandler(handler)
    package.setLevel(logging.DEBUG if verbose else logging.INFO)


def is_mermaid(elem: Element) -> bool:
    return type(elem) is CodeBlock and any(c.lower() == "mermaid" for c in elem.classes)


def definition_of(elem: CodeBlock) -> str:
    return elem.text.strip()


def image_format(doc_format: str | None, settings: Settings) -> str:
    if not doc_format or doc_format in HTML_FORMATS:
        if settings.output_format == "pdf":
            logger.warning("pdf charts cannot be embedded in %s output, using svg", doc_format or "html")
            return "svg"
        return settings.output_format
    return "pdf" if doc_format in PDF_FORMATS else "png"


class MermaidFilter:
    """Owns the settings, the chart cache and the renderer for a render pass.

    Keep one instance around (or hand the same ``cache`` to several) to reuse
    rendered charts across documents.
    """

    def __init__(self, settings: Settings | None = None, cache: ChartCache | None = None) -> None:
        self.defaults = settings or Settings()
        self.settings = self.defaults
        self.cache = cache if cache is not None else ChartCache(self.defaults.cache)
        self.renderer = Renderer(self.settings)

    def html(self, doc: Doc) -> bool:
        return not doc.format or doc.format in HTML_FORMATS

    def prepare(self, doc: Doc) -> None:
        metadata = doc.get_metadata(METADATA_KEY, default={})
        if not isinstance(metadata, Mapping):
            logger.warning("Ignoring %r metadata, expected a map of settings", METADATA_KEY)
            metadata = {}
        self.settings = self.defaults.merge(metadata)
        if self.settings.verbose:
            logging.getLogger(__package__).setLevel(logging.DEBUG)
        if not self.html(doc):
            # native figures need the files to stay on disk
            self.settings = replace(self.settings, inline=False, url_prefix="")
        self.settings.initialise()
        self.renderer = Renderer(self.settings, image_format(doc.format, self.settings))

        self.cache.enabled = self.settings.cache
        if not self.settings.cache:
            self.cache.clear()
        doc.walk(self.collect)
        logger.debug("Collected %d mermaid chart(s), %d pending", len(self.cache), len(self.cache.pending()))

    def collect(self, elem: Element, _doc: Doc) -> None:
        if is_mermaid(elem):
            record = self.cache.register(definition_of(elem))
            if record.stale(self.renderer.output_format):
                logger.debug("Rendering chart %s again as %s", record.identifier, self.renderer.output_format)
                record.reset()

    def action(self, elem: Element, doc: Doc) -> Element | None:
        if not is_mermaid(elem):
            return None

        definition = definition_of(elem)
        try:
            record = self.cache.get(definition)
            if record.pending:
                self.renderer.render_pending(self.cache)
            meta = record.meta(elem.attributes)
            markup = assemble(record, meta, self.settings)
        except Exception as e:  # noqa: BLE001
            if self.settings.throw_on_error:
                logger.error("Failure rendering mermaid chart %s", definition)  # noqa: TRY400
                raise
            logger.error("Failure rendering mermaid chart %s: %s", definition, e)  # noqa: TRY400
            return RawBlock(fallback(definition), format="html") if self.html(doc) else None

        if self.html(doc):
            return RawBlock(figure(meta, markup, elem.identifier), format="html")
        return self.native(elem, record, meta)

    def native(self, elem: CodeBlock, record: ChartRecord, meta: ChartMeta) -> Element:
        caption = (
            Caption(*panflute.convert_text(html.unescape(meta.caption))) if meta.caption else None
        )
        alt_text = meta.alt or meta.caption
        alt = panflute.convert_text(html.unescape(alt_text)) if alt_text else None
        image = Image(
            # Convert alt Para to inlines
            *((alt[0].content) if alt else ()),
            url=str(image_file(record, self.settings)),
            title=html.unescape(meta.title or ""),
            identifier=elem.identifier if caption is None else "",
        )
        if caption is not None:
            return Figure(Plain(image), caption=caption, identifier=elem.identifier)
        return Plain(image)

    def run(self, doc: Doc | None = None) -> Doc | None:
        return run_filter(self.action, prepare=self.prepare, doc=doc)


def render_markdown(
    text: str,
    settings: Settings | None = None,
    cache: ChartCache | None = None,
    *,
    standalone: bool = False,
    extra_args: list[str] | None = None,
) -> str:
    """Convert markdown to HTML with pandoc, rendering mermaid blocks on the way."""
    doc: Any = panflute.convert_text(text, standalone=True, extra_args=extra_args)
    doc = MermaidFilter(settings, cache).run(doc)
    return panflute.convert_text(
        doc, input_format="panflute", output_format="html", standalone=standalone, extra_args=extra_args
    )


def main(doc: Doc | None = None) -> Doc | None:
    configure_logging()
    return MermaidFilter().run(doc)


if __name__ == "__main__":
    main()
