"""
Filter settings.

Settings come from the ``mermaid`` map of the document metadata (usually the
YAML front matter), from a YAML settings file, or from keyword arguments.
Keys are written in kebab-case (``working-folder``); snake_case works too.

```yaml
mermaid:
  background-color: transparent
  inline: false
  url-prefix: /static/diagrams/
  mermaid-config:
    theme: forest
```
"""

import json
import logging
import shlex
import shutil
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from .paths import PATH_OUTPUT, PATH_WORKING

logger = logging.getLogger(__name__)

DEFAULT_COMMAND = ("npx", "-p", "@mermaid-js/mermaid-cli", "mmdc")
OUTPUT_FORMATS = ("svg", "png", "pdf")

MERMAID_CONFIG = "mermaidConfig.json"
PUPPETEER_CONFIG = "puppeteerConfig.json"
THEME_CSS = "theme.css"


def as_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"true", "yes", "on", "1"}:
        return True
    if isinstance(value, str) and value.strip().lower() in {"false", "no", "off", "0", ""}:
        return False
    raise ValueError(f"Setting {key!r} expects a boolean, got {value!r}")


def as_path(key: str, value: Any) -> Path:
    if not isinstance(value, str | Path) or not str(value).strip():
        raise ValueError(f"Setting {key!r} expects a folder path, got {value!r}")
    return Path(value).expanduser()


def as_mapping(key: str, value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, str):
        try:
            value = json.loads(value) if value.strip() else {}
        except json.JSONDecodeError as e:
            raise ValueError(f"Setting {key!r} is not valid JSON: {e}") from e
    if not isinstance(value, Mapping):
        raise ValueError(f"Setting {key!r} expects a mapping, got {value!r}")
    return dict(value)


def as_command(key: str, value: Any) -> tuple[str, ...]:
    command = shlex.split(value) if isinstance(value, str) else [str(part) for part in value]
    if not command:
        raise ValueError(f"Setting {key!r} must name an executable")
    return tuple(command)


def as_format(key: str, value: Any) -> str:
    value = str(value).strip().lower()
    if value not in OUTPUT_FORMATS:
        raise ValueError(f"Setting {key!r} must be one of {', '.join(OUTPUT_FORMATS)}, got {value!r}")
    return value


def as_str(_key: str, value: Any) -> str:
    return "" if value is None else str(value)


@dataclass(frozen=True, slots=True)
class Settings:
    working_folder: Path = PATH_WORKING
    """Temporary chart sources, mmdc configuration and fresh renders."""
    clear_working_folder: bool = False
    output_folder: Path = PATH_OUTPUT
    """Final images when charts are not embedded inline."""
    clear_output_folder: bool = False
    background_color: str = "white"
    theme_css: str = ""
    mermaid_config: dict[str, Any] = field(default_factory=dict)
    puppeteer_config: dict[str, Any] = field(default_factory=dict)
    url_prefix: str = ""
    """Prepended to the image file name in ``<img src=...>``."""
    inline: bool = True
    img_attributes: str = ""
    """Raw attribute string appended to generated ``<img>`` tags."""
    output_format: str = "svg"
    throw_on_error: bool = False
    verbose: bool = False
    cache: bool = True
    batch: bool = True
    """Render all pending charts of a document with one mmdc call."""
    command: tuple[str, ...] = DEFAULT_COMMAND

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any] | None) -> "Settings":
        return cls().merge(mapping)

    def merge(self, mapping: Mapping[str, Any] | None) -> "Settings":
        """Return a copy with the recognised keys of ``mapping`` applied."""
        changes: dict[str, Any] = {}
        for key, value in (mapping or {}).items():
            name = str(key).replace("-", "_")
            if name not in CONVERTERS:
                logger.warning("Ignoring unknown mermaid setting %r", key)
                continue
            changes[name] = CONVERTERS[name](str(key), value)
        return replace(self, **changes) if changes else self

    @property
    def mermaid_config_file(self) -> Path:
        return self.working_folder / MERMAID_CONFIG

    @property
    def puppeteer_config_file(self) -> Path:
        return self.working_folder / PUPPETEER_CONFIG

    @property
    def theme_file(self) -> Path:
        return self.working_folder / THEME_CSS

    def dump(self) -> str:
        data = asdict(self)
        data["working_folder"] = str(self.working_folder)
        data["output_folder"] = str(self.output_folder)
        data["command"] = list(self.command)
        return yaml.safe_dump(data, sort_keys=False)

    def initialise(self) -> None:
        """Prepare the folders and the configuration files mmdc reads."""
        if self.verbose:
            logger.debug("pandoc-mermaid-svg settings:\n%s", self.dump())

        if self.clear_working_folder and self.working_folder.exists():
            shutil.rmtree(self.working_folder)
        self.working_folder.mkdir(parents=True, exist_ok=True)

        if not self.inline:
            if self.clear_output_folder and self.output_folder.exists():
                shutil.rmtree(self.output_folder)
            self.output_folder.mkdir(parents=True, exist_ok=True)

        self.mermaid_config_file.write_text(json.dumps(self.mermaid_config), encoding="utf-8")
        self.puppeteer_config_file.write_text(json.dumps(self.puppeteer_config), encoding="utf-8")
        # newlines would end the style block once the svg lands in markdown
        self.theme_file.write_text(self.theme_css.replace("\r", "").replace("\n", ""), encoding="utf-8")


CONVERTERS = {
    "working_folder": as_path,
    "clear_working_folder": as_bool,
    "output_folder": as_path,
    "clear_output_folder": as_bool,
    "background_color": as_str,
    "theme_css": as_str,
    "mermaid_config": as_mapping,
    "puppeteer_config": as_mapping,
    "url_prefix": as_str,
    "inline": as_bool,
    "img_attributes": as_str,
    "output_format": as_format,
    "throw_on_error": as_bool,
    "verbose": as_bool,
    "cache": as_bool,
    "batch": as_bool,
    "command": as_command,
}


def load_settings_file(path: Path) -> dict[str, Any]:
    """Read raw settings from a YAML file, either top level or under ``mermaid``."""
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, Mapping):
        raise ValueError(f"Settings file {path} must hold a mapping")
    if isinstance(data.get("mermaid"), Mapping):
        return dict(data["mermaid"])
    return dict(data)
