"""Members, roles and messages of a server, and the context of a branch."""

from __future__ import annotations

import copy
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from .bijson import Bijson, BijsonType
from .birank import Birank

_FEATURE_COUNT = 6
_NO_PRIMACY = 2**31 - 1


def _default_features() -> list[Birank]:
    return [Birank() for _ in range(_FEATURE_COUNT)]


@dataclass
class Member:
    """A user of a server and the ranks of the roles it holds."""

    user_trip: str = ""
    roles_ranks: dict[str, Birank] = field(default_factory=dict)


@dataclass
class Role:
    """A named set of six ranked features and a primacy.

    Features: 0 muted, 1 invite, 2 remove, 3 grant roles, 4 create roles, 5 edit.
    """

    features: list[Birank] = field(default_factory=_default_features)
    primacy_rank: list[int] = field(default_factory=lambda: [0, 0])

    def get_primacy(self) -> int:
        return self.primacy_rank[0]

    def get_mute(self) -> bool:
        return bool(self.features[0])

    def can_invite(self) -> bool:
        return bool(self.features[1])

    def can_rem(self) -> bool:
        return bool(self.features[2])

    def can_rgrant(self) -> bool:
        return bool(self.features[3])

    def can_rcreate(self) -> bool:
        return bool(self.features[4])

    def can_edit(self) -> bool:
        return bool(self.features[5])


@dataclass
class Message:
    """A message applied to a branch."""

    hash: str = ""
    supertype: str = ""
    type: str = ""
    data: Any = None
    extra: Any = None


class BranchContext:
    """Settings, members and roles in force along a branch."""

    def __init__(self, input_contexts: Iterable[BranchContext] | None = None) -> None:
        """Start a fresh context, or merge the contexts of parent branches.

        A fresh context holds only the creator role; a merged one holds
        what its inputs hold, choosing the highest rank wherever they differ.
        """
        self.settings = Bijson()
        self.settings.set_type(BijsonType.MAP)
        self.members: dict[str, Member] = {}
        self.roles: dict[str, Role] = {}
        if input_contexts is None:
            self._initialize_roles()
            return
        for context in input_contexts:
            self._absorb(context)

    def _initialize_roles(self) -> None:
        creator = Role(primacy_rank=[0, 0])
        creator.features[0].orient_dir(False)
        for feature in creator.features[1:]:
            feature.orient_dir(True)
        self.roles["creator"] = creator

    def _absorb(self, context: BranchContext) -> None:
        for trip, incoming in context.members.items():
            current = self.members.get(trip)
            if current is None:
                self.members[trip] = copy.deepcopy(incoming)
                continue
            for name, rank in incoming.roles_ranks.items():
                existing = current.roles_ranks.get(name, Birank())
                current.roles_ranks[name] = copy.copy(max(rank, existing))
        for name, incoming_role in context.roles.items():
            current_role = self.roles.get(name)
            if current_role is None:
                self.roles[name] = copy.deepcopy(incoming_role)
                continue
            current_role.features = [
                copy.copy(max(new, old))
                for new, old in zip(incoming_role.features, current_role.features)
            ]
        self.settings = Bijson.merge(self.settings, context.settings)

    def _role(self, name: str) -> Role:
        return self.roles.setdefault(name, Role())

    def min_primacy(self, target: Member) -> int:
        """Return the lowest primacy among the member's held roles."""
        return min(
            (
                self._role(name).get_primacy()
                for name, rank in target.roles_ranks.items()
                if rank.get_dir()
            ),
            default=_NO_PRIMACY,
        )

    def has_feature(self, target: Member, index: int) -> bool:
        """Return whether any role the member holds grants feature ``index``."""
        return any(
            bool(self._role(name).features[index])
            for name, rank in target.roles_ranks.items()
            if rank.get_dir()
        )


@dataclass
class Branch:
    """A linear run of a server's messages between forks."""

    first_hash: str = ""
    messages: list[Message] = field(default_factory=list)
    ctx: BranchContext = field(default_factory=BranchContext)
    c_branch_fbs: set[str] = field(default_factory=set)
    p_branch_fbs: set[str] = field(default_factory=set)