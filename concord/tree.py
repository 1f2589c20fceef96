"""The block graph shared by servers, with users and persistence."""

from __future__ import annotations

import json
import random
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from pathlib import Path

from .block import Block, block_to_json, construct_block, json_to_block, verify_block
from .crypt import dsa_keygen, dsa_sign, rsa_keygen
from .strops import b64_decode, b64_encode, trip as make_trip

TRIP_LEN = 24
_DEFAULT_C_TRIP = "=" * TRIP_LEN
_RANDOM = random.SystemRandom()


@dataclass
class Keypair:
    """A DSA and an RSA key, each base64 encoded."""

    dsa: str = ""
    rsa: str = ""


@dataclass
class User:
    """An identity: a trip derived from its public keys, plus its keys."""

    trip: str
    pubkeys: Keypair = field(default_factory=Keypair)
    prikeys: Keypair = field(default_factory=Keypair)

    @classmethod
    def generate(cls) -> User:
        """Create a user with fresh DSA and RSA key pairs."""
        dsa_pri, dsa_pub = dsa_keygen()
        rsa_pri, rsa_pub = rsa_keygen()
        return cls.from_keys(
            Keypair(b64_encode(dsa_pub), b64_encode(rsa_pub)),
            Keypair(b64_encode(dsa_pri), b64_encode(rsa_pri)),
        )

    @classmethod
    def from_public(cls, pubkeys: Keypair) -> User:
        """Create a user known only by its public keys."""
        return cls(make_trip(pubkeys.dsa + pubkeys.rsa, TRIP_LEN), pubkeys)

    @classmethod
    def from_keys(cls, pubkeys: Keypair, prikeys: Keypair) -> User:
        """Create a user from both its public and private keys."""
        return cls(make_trip(pubkeys.dsa + pubkeys.rsa, TRIP_LEN), pubkeys, prikeys)


def _copy_block(block: Block) -> Block:
    return replace(block, p_hashes=set(block.p_hashes), c_hashes=set(block.c_hashes))


def _sample(population: Iterable[str], count: int) -> list[str]:
    pool = sorted(population)
    return _RANDOM.sample(pool, max(0, min(count, len(pool))))


class Tree:
    """A graph of blocks keyed by hash, optionally saved in a directory."""

    def __init__(self, directory: str | Path | None = None) -> None:
        self._chain: dict[str, Block] = {}
        self._target_dir: Path | None = None
        self._has_root = False
        self._server_has_root: dict[str, bool] = {}
        self.pow_req = 0
        self.add_block_funcs: dict[str, Callable[[str], None]] = {}
        self.batch_add_funcs: dict[str, Callable[[set[str]], None]] = {}
        self.seen_s_trips: set[str] = set()
        if directory is not None:
            self.load(directory)

    def load(self, directory: str | Path) -> None:
        """Link the tree to ``directory`` and load every ``.block`` file in it."""
        path = Path(directory)
        if not path.is_dir():
            raise ValueError("Directory is not accessible.")
        self._target_dir = path
        loaded = [
            json_to_block(json.loads(entry.read_text(encoding="utf-8")))
            for entry in path.iterdir()
            if entry.name.endswith(".block") and entry.is_file()
        ]
        self.batch_push(loaded, save_new=False)

    def set_pow_req(self, pow_req: int) -> None:
        """Set the number of leading zeros new blocks must have."""
        self.pow_req = pow_req

    def gen_block(
        self,
        cont: str,
        s_trip: str,
        set_time: int | None = None,
        p_hashes: Iterable[str] | None = None,
        c_trip: str = _DEFAULT_C_TRIP,
    ) -> str:
        """Mine and push a block; return its hash."""
        if len(s_trip) != TRIP_LEN:
            raise ValueError(f"server trip must be {TRIP_LEN} characters")
        if len(c_trip) not in (TRIP_LEN, 0):
            raise ValueError(f"client trip must be {TRIP_LEN} characters or empty")
        parents = set(p_hashes or ())
        if not parents:
            parents = self.find_p_hashes(s_trip)
        block = construct_block(cont, parents, self.pow_req, s_trip, set_time, c_trip)
        self.chain_push(block)
        return block.hash

    def find_p_hashes(
        self,
        s_trip: str,
        base_p_hashes: Iterable[str] | None = None,
        p_count: int = 3,
    ) -> set[str]:
        """Pick parents for a new block of server ``s_trip``.

        At least one block of the same server is included, for continuity.
        """
        p_hashes = set(base_p_hashes or ())
        intra_childless = self.get_qualifying_hashes(Tree.is_intraserver_childless)
        require_intra = not any(self._s_trip_of(h) == s_trip for h in p_hashes)
        wanted = max(p_count - len(p_hashes), int(require_intra))
        p_hashes.update(_sample(intra_childless, wanted))
        remainder = len(p_hashes) - p_count
        if remainder > 0:
            p_hashes.update(_sample(self.get_qualifying_hashes(Tree.is_childless), remainder))
        return p_hashes

    def get_chain(self) -> dict[str, Block]:
        """Return a snapshot of the hash-to-block mapping."""
        return dict(self._chain)

    def _s_trip_of(self, block_hash: str) -> str:
        block = self._chain.get(block_hash)
        return block.s_trip if block is not None else ""

    def is_childless(self, block: Block) -> bool:
        return not block.c_hashes

    def is_orphan(self, block: Block) -> bool:
        return not block.p_hashes

    def is_intraserver_childless(self, block: Block) -> bool:
        return self.intraserver_child_count(block) == 0

    def is_intraserver_orphan(self, block: Block) -> bool:
        return self.intraserver_parent_count(block) == 0

    def intraserver_child_count(self, block: Block) -> int:
        return sum(1 for h in block.c_hashes if self._s_trip_of(h) == block.s_trip)

    def intraserver_parent_count(self, block: Block) -> int:
        return sum(1 for h in block.p_hashes if self._s_trip_of(h) == block.s_trip)

    def get_qualifying_hashes(
        self, qual_func: Callable[[Tree, Block], bool], s_trip: str = ""
    ) -> set[str]:
        """Return hashes of blocks (of ``s_trip``, if given) that satisfy ``qual_func``."""
        return {
            block_hash
            for block_hash, block in sorted(self._chain.items())
            if (not s_trip or block.s_trip == s_trip) and qual_func(self, block)
        }

    def get_parent_hash_union(self, c_hashes: Iterable[str]) -> set[str]:
        """Return every parent hash of the given blocks."""
        union: set[str] = set()
        for child in c_hashes:
            block = self._chain.get(child)
            if block is not None:
                union |= block.p_hashes
        return union

    def search_user(self, trip: str = "") -> list[Block]:
        """Return valid blocks whose JSON content names ``trip`` (any, if empty)."""
        matches = []
        for _, block in sorted(self._chain.items()):
            try:
                content = json.loads(block.cont)
            except ValueError:
                continue
            if not isinstance(content, dict):
                continue
            declared = content.get("d")
            if not declared or not verify_block(block, self.pow_req):
                continue
            if not trip or declared == trip:
                matches.append(block)
        return matches

    def declare_user(self, user: User, nick: str = "") -> str:
        """Publish a signed declaration of the user's public keys; return its hash."""
        declaration: dict[str, object] = {
            "d": user.trip,
            "keys": {"sig_pubk": user.pubkeys.dsa, "enc_pubk": user.pubkeys.rsa},
        }
        if nick:
            declaration["n"] = nick
        signed_text = _dump(declaration)
        signature = dsa_sign(b64_decode(user.prikeys.dsa), signed_text.encode("utf-8"))
        envelope = {"cont": declaration, "sig": b64_encode(signature)}
        return self.gen_block(_dump(envelope), user.trip)

    def verify_chain(self) -> bool:
        """Check hashes, parent links and that each server has a single root."""
        root_seen: dict[str, bool] = {}
        for _, block in sorted(self._chain.items()):
            if not verify_block(block, self.pow_req):
                return False
            connected = False
            for parent in block.p_hashes:
                if parent not in self._chain:
                    return False
                if self._chain[parent].s_trip == block.s_trip:
                    connected = True
            if not connected:
                root_seen[block.s_trip] = not root_seen.get(block.s_trip, False)
                if not root_seen[block.s_trip]:
                    return False
        return True

    def chain_push(self, block: Block) -> None:
        """Add one block, link it, save it and notify its server's listener."""
        stored = _copy_block(block)
        self._chain[stored.hash] = stored
        self._link_block(stored)
        self._save(stored)
        listener = self.add_block_funcs.get(stored.s_trip)
        if listener is not None:
            listener(stored.hash)

    def batch_push(self, blocks: Iterable[Block], save_new: bool = True) -> None:
        """Add many blocks, relink the graph and notify each server once."""
        pushed = [_copy_block(block) for block in blocks]
        sections: dict[str, set[str]] = {}
        for block in pushed:
            self._chain[block.hash] = block
            sections.setdefault(block.s_trip, set()).add(block.hash)
        for _, block in sorted(self._chain.items()):
            self._link_block(block)
        if save_new:
            for block in pushed:
                self._save(block)
        for s_trip, section in sorted(sections.items()):
            listener = self.batch_add_funcs.get(s_trip)
            if listener is not None:
                listener(section)

    def _link_block(self, block: Block) -> None:
        parents = {h for h in block.p_hashes if h in self._chain}
        intra_orphan = all(self._chain[h].s_trip != block.s_trip for h in parents)
        if (not parents and self._has_root) or (
            intra_orphan and block.s_trip in self._server_has_root
        ):
            self._chain.pop(block.hash, None)
            for child_hash in block.c_hashes:
                child = self._chain.get(child_hash)
                if child is None:
                    continue
                if len(child.p_hashes) == 1:
                    del self._chain[child_hash]
                else:
                    child.p_hashes.discard(block.hash)
            return
        for parent in parents:
            self._chain[parent].c_hashes.add(block.hash)
        if not parents:
            self._has_root = True
        if intra_orphan:
            self._server_has_root[block.s_trip] = True

    def _save(self, block: Block) -> None:
        if self._target_dir is None:
            return
        target = self._target_dir / f"{block.hash}.block"
        target.write_text(_dump(block_to_json(block)), encoding="utf-8")


def _dump(data: object) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)