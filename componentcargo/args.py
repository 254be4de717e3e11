"""A small option scanner that picks out known options and skips the rest.

Unknown options and positional arguments are left alone so that the
command line can be handed on unchanged to the wrapped tool.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum


class ArgumentError(ValueError):
    """Raised when a known option is used incorrectly."""


class ArgKind(Enum):
    """How an option consumes the command line."""

    FLAG = "flag"
    SINGLE = "single"
    MULTIPLE = "multiple"
    COUNTING = "counting"


@dataclass
class Arg:
    """A known option and what has been seen of it so far."""

    name: str
    kind: ArgKind
    short: str | None = None
    value_name: str | None = None
    value: str | None = None
    values: list[str] = field(default_factory=list)
    occurrences: int = 0

    def expects_value(self) -> bool:
        """Return True if the option takes a value."""
        return self.kind in (ArgKind.SINGLE, ArgKind.MULTIPLE)

    def set_value(self, value: str) -> None:
        """Record a value given for the option."""
        if self.kind is ArgKind.SINGLE:
            if self.value is not None:
                raise ArgumentError(
                    f"the argument '{self}' cannot be used multiple times"
                )
            self.value = value
        elif self.kind is ArgKind.MULTIPLE:
            self.values.append(value)
        else:
            raise TypeError(f"option '{self}' does not take a value")

    def set_present(self) -> None:
        """Record that the option appeared on the command line."""
        if self.kind is ArgKind.FLAG:
            if self.occurrences:
                raise ArgumentError(
                    f"the argument '{self}' cannot be used multiple times"
                )
            self.occurrences = 1
        elif self.kind is ArgKind.COUNTING:
            self.occurrences += 1
        else:
            raise TypeError(f"option '{self}' requires a value")

    def take_single(self) -> str | None:
        """Remove and return the value of a single-valued option."""
        if self.kind is not ArgKind.SINGLE:
            return None
        value, self.value = self.value, None
        return value

    def take_multiple(self) -> list[str]:
        """Remove and return the values of a multi-valued option."""
        if self.kind is not ArgKind.MULTIPLE:
            return []
        values, self.values = self.values, []
        return values

    def count(self) -> int:
        """Return how many times the option has been seen."""
        if self.kind is ArgKind.SINGLE:
            return int(self.value is not None)
        if self.kind is ArgKind.MULTIPLE:
            return len(self.values)
        return self.occurrences

    def reset(self) -> None:
        """Forget everything seen for the option."""
        self.value = None
        self.values = []
        self.occurrences = 0

    def __str__(self) -> str:
        if self.expects_value():
            return f"{self.name} <{self.value_name}>"
        return self.name


class Args:
    """A set of known options, addressable by long and short name."""

    def __init__(self) -> None:
        self._long: dict[str, Arg] = {}
        self._short: dict[str, Arg] = {}

    def flag(self, name: str, short: str | None = None) -> Args:
        """Register an option that may appear at most once."""
        return self._insert(Arg(name, ArgKind.FLAG, short))

    def single(self, name: str, value_name: str, short: str | None = None) -> Args:
        """Register an option that takes one value."""
        return self._insert(Arg(name, ArgKind.SINGLE, short, value_name))

    def multiple(self, name: str, value_name: str, short: str | None = None) -> Args:
        """Register an option that may be given several values."""
        return self._insert(Arg(name, ArgKind.MULTIPLE, short, value_name))

    def counting(self, name: str, short: str | None = None) -> Args:
        """Register an option whose occurrences are counted."""
        return self._insert(Arg(name, ArgKind.COUNTING, short))

    def get(self, name: str) -> Arg | None:
        """Return the option with the given long name."""
        return self._long.get(name)

    def get_short(self, short: str) -> Arg | None:
        """Return the option with the given short name."""
        return self._short.get(short)

    def _insert(self, arg: Arg) -> Args:
        if arg.name in self._long:
            raise ValueError(f"duplicate argument `{arg.name}` provided")
        if arg.short is not None and arg.short in self._short:
            raise ValueError(f"duplicate argument `-{arg.short}` provided")
        self._long[arg.name] = arg
        if arg.short is not None:
            self._short[arg.short] = arg
        return self

    @staticmethod
    def _missing(option: Arg) -> ArgumentError:
        return ArgumentError(
            f"a value is required for '{option}' but none was supplied"
        )

    def parse(self, arg: str, rest: Iterable[str] = ()) -> bool:
        """Scan one argument, taking a value from ``rest`` when needed.

        Returns True if the argument is an option (known or not) and
        False otherwise. ``rest`` should be an iterator over the remaining
        arguments so that a consumed value is not seen again.
        """
        remaining: Iterator[str] = iter(rest)

        if arg.startswith("-") and not arg.startswith("--") and len(arg) > 1:
            shorts = arg[1:]
            for position, char in enumerate(shorts):
                option = self._short.get(char)
                if option is None:
                    continue
                if option.expects_value():
                    value = shorts[position + 1 :]
                    if not value:
                        value = next(remaining, None)
                        if value is None:
                            raise self._missing(option)
                    option.set_value(value.removeprefix("="))
                    return True
                option.set_present()
            return True

        if arg.startswith("--"):
            name, has_value, inline = arg.partition("=")
            option = self._long.get(name)
            if option is not None:
                if option.expects_value():
                    if has_value:
                        option.set_value(inline)
                    else:
                        value = next(remaining, None)
                        if value is None:
                            raise self._missing(option)
                        option.set_value(value)
                elif not has_value:
                    option.set_present()
            return True

        return False