"""
Pull figure metadata out of a mermaid definition.

```mermaid
figcaption "Request flow"
alt Client talks to the server
flowchart LR
    A --> B
```

The directive lines are not mermaid syntax, so they are cut from the
definition before it reaches mmdc.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass, replace


def directive(name: str) -> re.Pattern[str]:
    return re.compile(rf"^[ \t]*{name}[ \t]+(?P<value>.*)$", re.IGNORECASE | re.MULTILINE)


DIRECTIVES = {name: directive(name) for name in ("figcaption", "alt", "title")}


@dataclass(frozen=True, slots=True)
class ChartMeta:
    chart: str
    caption: str | None = None
    alt: str | None = None
    title: str | None = None

    def with_attributes(self, attributes: Mapping[str, str] | None) -> "ChartMeta":
        """Fill the fields the directives left empty from fenced code attributes."""
        attributes = attributes or {}

        def pick(current: str | None, attribute: str) -> str | None:
            if current is not None:
                return current
            if value := attributes.get(attribute):
                return strip_quotes(value)
            return None

        return replace(
            self,
            caption=pick(self.caption, "caption"),
            alt=pick(self.alt, "alt"),
            title=pick(self.title, "title"),
        )


def strip_quotes(value: str) -> str:
    """Drop one pair of enclosing double quotes and escape the rest as ``&quot;``."""
    value = value.strip()
    if len(value) >= 2 and value[0] == '"' and value[-1] == '"':  # noqa: PLR2004
        value = value[1:-1]
    return value.replace('"', "&quot;")


def extract(definition: str, attributes: Mapping[str, str] | None = None) -> ChartMeta:
    """Split a definition into the chart handed to mmdc and its figure metadata.

    Each directive is matched once, on its first occurrence. Fenced code
    attributes (``caption``, ``alt``, ``title``) fill in for directives the
    definition does not carry.
    """
    found: dict[str, str | None] = {}
    chart = definition
    for name, pattern in DIRECTIVES.items():
        if match := pattern.search(chart):
            found[name] = strip_quotes(match["value"])
            chart = chart[: match.start()] + chart[match.end() :]
        else:
            found[name] = None

    meta = ChartMeta(chart=chart, caption=found["figcaption"], alt=found["alt"], title=found["title"])
    return meta.with_attributes(attributes) if attributes else meta
