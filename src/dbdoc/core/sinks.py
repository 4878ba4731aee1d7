"""Output options and output sinks.

A sink is acquired for the duration of one Execute and is always released,
including when the crawl or the formatter fails. Writing to stdout never
closes stdout.
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, TextIO

from dbdoc.core.errors import SinkWriteError

logger = logging.getLogger(__name__)

DEFAULT_FORMAT = "text"


@dataclass(frozen=True)
class OutputOptions:
    """
    Where and how an Execute writes its report.

    Attributes:
        output_format: Format token looked up in the formatter registry.
        output_file: Destination file, or None for stdout.
        title: Optional report title.
    """

    output_format: str = DEFAULT_FORMAT
    output_file: Path | None = None
    title: str | None = None

    @property
    def destination(self) -> str:
        return str(self.output_file) if self.output_file else "<stdout>"


class Sink:
    """Text destination that reports write failures as SinkWriteError."""

    def __init__(self, stream: TextIO, *, name: str) -> None:
        self._stream = stream
        self.name = name

    def write(self, text: str) -> None:
        try:
            self._stream.write(text)
        except (OSError, UnicodeError) as exc:
            raise SinkWriteError(
                f"Cannot write to {self.name}: {exc}", option="output-file"
            ) from exc

    def writeln(self, text: str = "") -> None:
        self.write(f"{text}\n")

    def flush(self) -> None:
        try:
            self._stream.flush()
        except OSError as exc:
            raise SinkWriteError(
                f"Cannot flush {self.name}: {exc}", option="output-file"
            ) from exc


@contextmanager
def open_sink(output: OutputOptions) -> Iterator[Sink]:
    """
    Open the configured destination for writing.

    Files are written as UTF-8 with `\\n` line endings so that two runs over
    an unchanged catalog produce identical bytes.

    Raises:
        SinkWriteError: If the file cannot be opened.
    """
    if output.output_file is None:
        sink = Sink(sys.stdout, name="<stdout>")
        try:
            yield sink
        finally:
            sink.flush()
        return

    path = Path(output.output_file)
    try:
        if path.parent and not path.parent.exists():
            path.parent.mkdir(parents=True, exist_ok=True)
        stream = path.open("w", encoding="utf-8", newline="\n")
    except OSError as exc:
        raise SinkWriteError(
            f"Cannot open output file '{path}': {exc}", option="output-file"
        ) from exc

    logger.debug("Opened output file %s", path)
    try:
        yield Sink(stream, name=str(path))
    finally:
        stream.close()
        logger.debug("Closed output file %s", path)
