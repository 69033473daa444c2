"""Library for formatting output."""

from abc import ABC, abstractmethod
from typing import Generator, Any

import sys
from typing import TextIO
import yaml
import json


PADDING = 4


def column_format_string(rows: list[list[str]]) -> str:
    """Produce a format string based on max width of columns."""
    num_cols = len(rows[0])
    widths = [0] * num_cols
    for row in rows:
        for i, value in enumerate(row):
            widths[i] = max(widths[i], len(str(value)))
    return "".join([f"{{:{w+PADDING}}}" for w in widths])


def format_columns(
    headers: list[str], rows: list[list[str]]
) -> Generator[str, None, None]:
    """Print the specified output rows in a column format."""
    data = [headers] + rows
    format_string = column_format_string(data)
    if format_string:
        for row in data:
            yield format_string.format(*[str(x) for x in row]).rstrip()


class Formatter(ABC):
    """A formatter that prints a list of objects."""

    @abstractmethod
    def format(self, data: list[dict[str, Any]]) -> Generator[str, None, None]:
        """Format the data objects."""

    def print(self, data: list[dict[str, Any]], file: TextIO = sys.stdout) -> None:
        """Output the data objects."""
        for result in self.format(data):
            print(result, file=file)


class PrintFormatter(Formatter):
    """A formatter that prints human readable console output."""

    def __init__(self, keys: list[str]):
        """Initialize the PrintFormatter with the keys to print."""
        self._keys = keys

    def format(self, data: list[dict[str, Any]]) -> Generator[str, None, None]:
        """Format the data objects."""
        if not data:
            return
        rows = [[str(row.get(key, "")) for key in self._keys] for row in data]
        cols = [col.upper() for col in self._keys]
        yield from format_columns(cols, rows)


class YamlFormatter(Formatter):
    """A formatter that prints one yaml document per object."""

    def format(self, data: list[dict[str, Any]]) -> Generator[str, None, None]:
        """Format the data objects."""
        content = yaml.dump_all(data, sort_keys=False, explicit_start=True)
        yield from content.rstrip("\n").split("\n")


class JsonFormatter(Formatter):
    """A formatter that prints json output."""

    def format(self, data: list[dict[str, Any]]) -> Generator[str, None, None]:
        """Format the data objects."""
        yield from json.dumps(data, indent=4, sort_keys=False, default=str).split("\n")
