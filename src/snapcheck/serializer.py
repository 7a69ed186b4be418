"""
Canonical serialization for snapcheck.

A snapshot is compared and stored as a string. The Serializer turns any
runtime value into that string by trying an ordered list of formatters; the
first one that returns a string wins. A pretty-print fallback accepts every
value, so serialization never fails.

Formatters follow a single-method protocol:

    class DecimalFormatter:
        def format(self, value: Any) -> str | None:
            if isinstance(value, Decimal):
                return f"Decimal({str(value)!r})"
            return None

    serializer = Serializer()
    serializer.add(DecimalFormatter())   # tried before the built-ins
"""

import pprint
from typing import Any, Protocol, runtime_checkable


# =============================================================================
# CONFIGURATION
# =============================================================================


# Line width handed to pprint; wider values wrap across lines
DEFAULT_WIDTH = 80


# =============================================================================
# FORMATTER PROTOCOL
# =============================================================================


@runtime_checkable
class Formatter(Protocol):
    """
    Protocol for format handlers (structural typing).

    format() returns the canonical string for values it understands, and
    None for everything else so the next formatter gets a turn.
    """

    def format(self, value: Any) -> str | None:
        """Render value, or return None to pass."""
        ...


# =============================================================================
# BUILT-IN FORMATTERS
# =============================================================================


class TextFormatter:
    """
    Renders str values in double quotes, keeping real line breaks.

    Multi-line text stays readable in the snapshot file instead of being
    collapsed into a single escaped line. Backslashes and double quotes are
    escaped so the output is unambiguous.
    """

    def format(self, value: Any) -> str | None:
        if not isinstance(value, str):
            return None
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'


def _element_key(item: Any) -> tuple[str, str]:
    return type(item).__name__, repr(item)


class _SortedSet:
    """
    Stand-in for a set or frozenset that prints its elements sorted.

    pprint only sorts set elements when it wraps the set across lines; a set
    short enough for one line prints in hash order, which changes with
    PYTHONHASHSEED.
    """

    def __init__(self, value: set | frozenset) -> None:
        items = [_canonical(item) for item in value]
        try:
            items.sort()
        except TypeError:
            # Mixed types: order by type name, then repr
            items.sort(key=_element_key)
        body = ", ".join(repr(item) for item in items)
        name = "frozenset" if isinstance(value, frozenset) else "set"

        if not items:
            self._text = f"{name}()"
        elif name == "frozenset":
            self._text = f"frozenset({{{body}}})"
        else:
            self._text = f"{{{body}}}"

    def __repr__(self) -> str:
        return self._text

    def __eq__(self, other: object) -> bool:
        return isinstance(other, _SortedSet) and self._text == other._text

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, _SortedSet):
            return NotImplemented
        return self._text < other._text

    def __hash__(self) -> int:
        return hash(self._text)


def _canonical(value: Any) -> Any:
    """Replace sets, at any depth of plain containers, with _SortedSet."""
    if isinstance(value, (set, frozenset)):
        return _SortedSet(value)
    if type(value) is dict:
        return {_canonical(k): _canonical(v) for k, v in value.items()}
    if type(value) is list:
        return [_canonical(item) for item in value]
    if type(value) is tuple:
        return tuple(_canonical(item) for item in value)
    return value


class PrettyFormatter:
    """Fallback that renders any value with pprint (dict keys and set elements sorted)."""

    def __init__(self, width: int = DEFAULT_WIDTH) -> None:
        self._width = width

    def format(self, value: Any) -> str:
        return pprint.pformat(
            _canonical(value), indent=1, width=self._width, sort_dicts=True
        )


# =============================================================================
# SERIALIZER
# =============================================================================


class Serializer:
    """
    Ordered chain of formatters with a guaranteed fallback.

    Formatters added later are tried first, so project-specific formatters
    override the built-ins. The fallback is always tried last.
    """

    def __init__(self, formatters: list[Formatter] | None = None) -> None:
        if formatters is None:
            formatters = [TextFormatter()]
        self._formatters: list[Formatter] = list(formatters)
        self._fallback = PrettyFormatter()

    @property
    def formatters(self) -> list[Formatter]:
        """Formatters in the order they are tried (fallback excluded)."""
        return list(self._formatters)

    def add(self, formatter: Formatter) -> None:
        """
        Prepend a formatter so it is tried before all others.

        Raises:
            TypeError: If formatter has no format() method.
        """
        if not isinstance(formatter, Formatter):
            raise TypeError(
                f"Formatter must define format(value), got {type(formatter).__name__}"
            )
        self._formatters.insert(0, formatter)

    def serialize(self, value: Any) -> str:
        """Return the canonical string form of value."""
        for formatter in self._formatters:
            rendered = formatter.format(value)
            if rendered is not None:
                return rendered
        return self._fallback.format(value)
