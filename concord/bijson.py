"""JSON trees whose keys carry ranks, so that diverging edits can be merged."""

from __future__ import annotations

import copy
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .birank import Birank


class BijsonType(Enum):
    TERMINAL = "terminal"
    MAP = "map"
    VECT = "vect"


@dataclass
class _Entry:
    value: Bijson = field(default_factory=lambda: Bijson())
    rank: Birank = field(default_factory=Birank)


class Bijson:
    """A JSON value in which every map key has a rank and may be cleared."""

    def __init__(self, base: Any = None) -> None:
        self.type = BijsonType.TERMINAL
        self.map_values: dict[str, _Entry] = {}
        self.vect_values: list[_Entry] = []
        self.base_json: Any = None
        if isinstance(base, dict):
            for key, value in base.items():
                self.set_key(key, Bijson(value))
        else:
            self.set_base(base)

    @classmethod
    def merge(cls, a: Bijson, b: Bijson) -> Bijson:
        """Merge two values of the same type; higher-ranked keys win.

        Nested maps whose keys are set at equal rank are merged in turn.
        """
        if a.type != b.type:
            raise ValueError(f"cannot merge {a.type.value} with {b.type.value}")
        merged = cls()
        merged.set_type(a.type)
        if a.type is BijsonType.MAP:
            merged.map_values = copy.deepcopy(a.map_values)
            for key, entry_b in b.map_values.items():
                current = merged.map_values.get(key)
                if current is None or entry_b.rank > current.rank:
                    merged.map_values[key] = copy.deepcopy(entry_b)
                elif (
                    entry_b.value.type is BijsonType.MAP
                    and current.value.type is BijsonType.MAP
                    and entry_b.rank.get_dir()
                    and entry_b.rank == current.rank
                ):
                    current.value = cls.merge(current.value, entry_b.value)
        return merged

    def set_key(self, key: str, value: Bijson) -> None:
        """Set ``key`` to ``value``, raising its rank."""
        self.set_type(BijsonType.MAP)
        entry = self.map_values.setdefault(key, _Entry())
        entry.rank.orient_dir(False)
        entry.rank.orient_dir(True)
        entry.value = copy.deepcopy(value)

    def set_base(self, base: Any) -> None:
        """Make this a terminal holding ``base``."""
        self.set_type(BijsonType.TERMINAL)
        self.base_json = base

    def set_keys(self, key_values: Mapping[str, Bijson]) -> None:
        for key, value in key_values.items():
            self.set_key(key, value)

    def set_type(self, new_type: BijsonType) -> None:
        """Change the type, dropping the contents that belong to other types."""
        self.type = new_type
        if new_type is not BijsonType.TERMINAL:
            self.base_json = None
        if new_type is not BijsonType.MAP:
            self.map_values.clear()
        if new_type is not BijsonType.VECT:
            self.vect_values.clear()

    def clear_key(self, key: str) -> None:
        """Mark ``key`` as removed, so it no longer appears in :meth:`dump`."""
        self.set_type(BijsonType.MAP)
        entry = self.map_values.setdefault(key, _Entry())
        entry.value = Bijson()
        entry.rank.orient_dir(False)

    def clear_keys(self, keys: Iterable[str]) -> None:
        for key in keys:
            self.clear_key(key)

    def dump(self) -> Any:
        """Return the plain JSON value; a map with no live keys dumps as None."""
        if self.type is not BijsonType.MAP:
            return self.base_json
        live = {
            key: entry.value.dump()
            for key, entry in self.map_values.items()
            if entry.rank.get_dir()
        }
        return live or None