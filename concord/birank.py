"""A rank that also records a direction (set or cleared)."""

from __future__ import annotations

from dataclasses import dataclass
from functools import total_ordering


@total_ordering
@dataclass
class Birank:
    """A signed counter; the sign is the direction, the magnitude the rank.

    0, the initial value, counts as positive.  Every change of direction
    moves the rank up, so the sequence of states is 0, -1, 1, -2, 2, ...
    and a later state always compares greater than an earlier one.
    """

    irank: int = 0

    def __bool__(self) -> bool:
        return self.get_dir()

    def _order_key(self) -> int:
        if self.irank >= 0:
            return 2 * self.irank
        return -2 * self.irank - 1

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Birank):
            return NotImplemented
        return self._order_key() < other._order_key()

    def increment(self) -> None:
        """Raise the rank without changing the direction."""
        if self.get_dir():
            self.irank += 1
        else:
            self.irank -= 1

    def orient_dir(self, direction: bool) -> None:
        """Point the rank in ``direction``, raising it if that is a change."""
        if self.get_dir() == direction:
            return
        if self.irank >= 0:
            self.irank += 1
        self.irank = -self.irank

    def get_dir(self) -> bool:
        """Return True for the positive direction (including 0)."""
        return self.irank >= 0