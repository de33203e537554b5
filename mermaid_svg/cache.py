import secrets
import string
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

from .errors import ChartNotFoundError
from .extract import ChartMeta, extract

ALPHABET = string.ascii_lowercase + string.digits
IDENTIFIER_LENGTH = 10


class State(StrEnum):
    PENDING = "pending"
    RENDERED = "rendered"
    ASSEMBLED = "assembled"
    FAILED = "failed"


def identifier(length: int = IDENTIFIER_LENGTH) -> str:
    return "".join(secrets.choice(ALPHABET) for _ in range(length))


@dataclass(slots=True)
class ChartRecord:
    """One distinct chart definition.

    ``caption``, ``alt`` and ``title`` come from the definition's directive
    lines only; fenced attributes differ per block and are applied by
    :meth:`meta`. ``data`` holds the rendered image in ``format``, so it can be
    embedded or written out again however the next block asks for it.
    """

    identifier: str
    definition: str
    chart: str
    caption: str | None = None
    alt: str | None = None
    title: str | None = None
    output: Path | None = None
    data: bytes | None = field(default=None, repr=False)
    format: str | None = None
    state: State = State.PENDING
    error: Exception | None = field(default=None, repr=False)

    @property
    def pending(self) -> bool:
        return self.state is State.PENDING

    def meta(self, attributes: Mapping[str, str] | None = None) -> ChartMeta:
        return ChartMeta(self.chart, self.caption, self.alt, self.title).with_attributes(attributes)

    def stale(self, image_format: str) -> bool:
        """Whether the image has to be rendered again to be shown as ``image_format``."""
        if self.state is State.RENDERED and (self.output is None or not self.output.is_file()):
            return True
        return self.state in {State.RENDERED, State.ASSEMBLED} and self.format != image_format

    def reset(self) -> None:
        if self.output is not None:
            self.output.unlink(missing_ok=True)
        self.output = None
        self.data = None
        self.format = None
        self.state = State.PENDING

    def rendered(self, output: Path) -> None:
        self.output = output
        self.format = output.suffix.lstrip(".")
        self.state = State.RENDERED

    def assembled(self, data: bytes) -> None:
        self.data = data
        self.output = None
        self.state = State.ASSEMBLED

    def failed(self, error: Exception) -> None:
        self.error = error
        self.state = State.FAILED


class ChartCache:
    """Charts seen so far, keyed by their exact definition text.

    Registration happens while the document is collected, before anything is
    rendered, so every pending chart of a document can go to mmdc in one call.
    """

    def __init__(self, enabled: bool = True) -> None:  # noqa: FBT001, FBT002
        self.enabled = enabled
        self._records: dict[str, ChartRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ChartRecord]:
        return iter(self._records.values())

    def __contains__(self, definition: object) -> bool:
        return definition in self._records

    def register(self, definition: str) -> ChartRecord:
        if self.enabled and (record := self._records.get(definition)) is not None:
            return record

        meta = extract(definition)
        taken = {record.identifier for record in self._records.values()}
        while (ident := identifier()) in taken:
            pass
        record = ChartRecord(
            identifier=ident,
            definition=definition,
            chart=meta.chart,
            caption=meta.caption,
            alt=meta.alt,
            title=meta.title,
        )
        self._records[definition] = record
        return record

    def get(self, definition: str) -> ChartRecord:
        try:
            return self._records[definition]
        except KeyError:
            raise ChartNotFoundError(f"No chart registered for definition: {definition}") from None

    def pending(self) -> list[ChartRecord]:
        return [record for record in self._records.values() if record.pending]

    def clear(self) -> None:
        self._records.clear()
