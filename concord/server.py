"""A server: an encrypted, signed message stream stored on a shared tree."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from typing import Any

from .block import get_raw_time
from .branch import Branch, BranchContext, Member, Message
from .crypt import (
    CryptoError,
    dsa_verify,
    lock_message,
    rsa_decrypt,
    rsa_encrypt,
    unlock_message,
)
from .bijson import Bijson
from .strman import content_hash_concat, features_decode
from .strops import b64_decode, b64_encode, hash_bytes, trip as make_trip
from .tree import TRIP_LEN, Keypair, Tree, User

_log = logging.getLogger(__name__)

_MUTED, _INVITE, _REMOVE, _GRANT, _CREATE, _EDIT = range(6)


def _apply_error(tag: str, context: str) -> bool:
    _log.info("[Server.apply_data | %s] %s", tag, context)
    return False


class Server:
    """Reads and writes one server's messages on a tree, keyed by its AES key."""

    def __init__(
        self,
        tree: Tree,
        aes_key: str,
        load_user: User | None = None,
        prev_aes_key: str = "",
        heads: Iterable[str] | None = None,
    ) -> None:
        self.tree = tree
        self.luser = load_user if load_user is not None else User.generate()
        self.constraint_heads: set[str] = set(heads or ())
        self.constraint_path_fbs: set[str] = set()
        self.constraint_path_lbs: set[str] = set()
        self.raw_aes_key = b64_decode(aes_key)
        self.s_trip = make_trip(aes_key, TRIP_LEN)
        self.known_users: dict[str, User] = {}
        self.branches: dict[str, Branch] = {}
        self.root_fb = ""

        root_hashes = tree.get_qualifying_hashes(Tree.is_intraserver_orphan, self.s_trip)
        if len(root_hashes) > 1:
            raise ValueError("server has more than one root block")

        tree.add_block_funcs[self.s_trip] = self.add_block
        tree.batch_add_funcs[self.s_trip] = self.add_batch

        if root_hashes:
            self.root_fb = next(iter(root_hashes))
            for head in self.constraint_heads:
                self._backscan_constraint_path(head)
            self._load_branch_forward(self.root_fb)
        else:
            nserv_data: dict[str, Any] = {
                "cms": {
                    "enc_pubk": self.luser.pubkeys.rsa,
                    "sig_pubk": self.luser.pubkeys.dsa,
                }
            }
            if prev_aes_key:
                nserv_data["prev_key"] = prev_aes_key
            self.root_fb = self.send_message(self.luser, nserv_data, "a", "nserv")

    # get

    def get_root_branch(self) -> Branch:
        return self.get_branch(self.root_fb)

    def get_branch(self, fb: str) -> Branch:
        return self.branches.setdefault(fb, Branch(first_hash=fb))

    # membership

    def create_member(self, pkeys: Keypair, init_roles: Iterable[str] = ()) -> Member:
        """Register the user with these public keys and return it as a member."""
        new_user = User.from_public(pkeys)
        self.known_users[new_user.trip] = new_user
        member = Member(user_trip=new_user.trip)
        for role_name in init_roles:
            member.roles_ranks.setdefault(role_name, _new_rank()).orient_dir(True)
        return member

    # applying messages

    def apply_data(
        self,
        ctx: BranchContext,
        extra: dict[str, Any],
        claf_data: dict[str, Any],
        content: bytes,
        signature: bytes,
        content_hash: str,
    ) -> bool:
        """Apply one decoded message to ``ctx``; return whether it was valid."""
        if content_hash != claf_data.get("h"):
            return _apply_error("hash", "Content hash doesn't match")

        st = claf_data.get("st")
        t = claf_data.get("t")
        data = claf_data.get("d") or {}

        if not ctx.members and st == "a" and t == "nserv":
            cms = data["cms"]
            creator = self.create_member(
                Keypair(cms["sig_pubk"], cms["enc_pubk"]), ["creator"]
            )
            ctx.members[creator.user_trip] = creator
            return True

        author_member = ctx.members.get(claf_data.get("a", ""))
        author = self.known_users.get(author_member.user_trip) if author_member else None
        if author_member is None or author is None:
            return _apply_error("member", "Author is not a member")
        author_primacy = ctx.min_primacy(author_member)
        try:
            valid = dsa_verify(b64_decode(author.pubkeys.dsa), signature, content)
        except CryptoError:
            valid = False
        if not valid:
            return _apply_error("signature", "Signature is not valid")

        if st == "c":
            return True
        if st == "a":
            if t == "invite":
                return self._apply_invite(ctx, author_member, data)
            if t == "rem":
                return self._apply_rem(ctx, author_member, data, extra)
            return False
        if st == "r":
            if t == "crole":
                return self._apply_crole(ctx, author_member, author_primacy, data)
            return self._apply_role_change(ctx, author_member, author_primacy, t, data)
        if st == "s":
            return self._apply_settings(ctx, author_member, t, data)
        return False

    def _apply_invite(self, ctx: BranchContext, author: Member, data: dict) -> bool:
        if not ctx.has_feature(author, _INVITE):
            return _apply_error("invite", "User cannot invite others")
        for keyset in data.get("nms", []):
            member = self.create_member(Keypair(keyset["sig_pubk"], keyset["enc_pubk"]))
            ctx.members[member.user_trip] = member
        return True

    def _apply_rem(
        self, ctx: BranchContext, author: Member, data: dict, extra: dict
    ) -> bool:
        if not ctx.has_feature(author, _REMOVE):
            return _apply_error("rem", "User does not have rem permissions")
        nsk: dict[str, str] = data.get("nsk", {})
        removed = set(data.get("rms", []))
        relevant = set()
        for user_trip in ctx.members:
            if user_trip not in removed:
                if user_trip not in nsk:
                    return _apply_error(" ", "CLAF doesn't contain all members")
                relevant.add(user_trip)
        if self.luser.trip not in relevant:
            return _apply_error("user", "User is not a member")
        try:
            decrypted_key = rsa_decrypt(
                b64_decode(self.luser.prikeys.rsa), b64_decode(nsk[self.luser.trip])
            )
        except CryptoError:
            return _apply_error("key", "Key cannot be decrypted")
        if b64_encode(hash_bytes(decrypted_key)) != data.get("nst"):
            return _apply_error("key", "Key doesn't match")
        for user_trip in ctx.members:
            known = self.known_users.get(user_trip)
            if known is None:
                return _apply_error("legit", "Could not verify (other) member's authenticity")
            try:
                expected = b64_encode(
                    rsa_encrypt(b64_decode(known.pubkeys.rsa), b64_decode(decrypted_key))
                )
            except CryptoError:
                return _apply_error("legit", "Could not verify (other) member's authenticity")
            if expected != nsk.get(user_trip):
                return _apply_error("legit", "Could not verify (other) member's authenticity")
        extra["s_key"] = b64_encode(decrypted_key)
        return True

    def _apply_crole(
        self, ctx: BranchContext, author: Member, author_primacy: int, data: dict
    ) -> bool:
        if not ctx.has_feature(author, _CREATE):
            return _apply_error("role", "User doesn't have RoleCreation permissions")
        target_role = data["rn"]
        target_primacy = int(data["rp"])
        target_features = features_decode(int(data["pc"]))
        if author_primacy >= target_primacy:
            return _apply_error("primacy", "User cannot scale further role")
        create = target_role not in ctx.roles
        role = ctx.roles.setdefault(target_role, _new_role())
        if create:
            role.primacy_rank = [target_primacy, 0]
        elif role.get_primacy() != target_primacy:
            role.primacy_rank[0] = target_primacy
            role.primacy_rank[1] += 1
        for feature, wanted in zip(role.features, target_features):
            feature.orient_dir(wanted)
        return True

    def _apply_role_change(
        self, ctx: BranchContext, author: Member, author_primacy: int, t: Any, data: dict
    ) -> bool:
        if not ctx.has_feature(author, _GRANT):
            return _apply_error("(g/r)role", "User cannot give/remove roles")
        target_role = data["tr"]
        role = ctx.roles.setdefault(target_role, _new_role())
        if author_primacy >= role.get_primacy():
            return _apply_error("target.primacy", "User cannot modify higher role")
        if t == "grole":
            direction = True
        elif t == "rrole":
            direction = False
        else:
            return False
        altered = ctx.members.setdefault(data["tu"], Member())
        altered.roles_ranks.setdefault(target_role, _new_rank()).orient_dir(direction)
        return True

    def _apply_settings(
        self, ctx: BranchContext, author: Member, t: Any, data: dict
    ) -> bool:
        if not ctx.has_feature(author, _EDIT):
            return _apply_error("can_edit", "User cannot edit")
        is_set, is_clear = t == "sset", t == "cset"
        if not is_set and not is_clear:
            return False
        key_vects = data.get("sn", [])
        po_bools = data.get("po", [])
        vals = data.get("sv", [])
        if is_set and len(key_vects) != len(vals):
            return False
        if po_bools and len(po_bools) != len(key_vects):
            return False
        for index, keys in enumerate(key_vects):
            if not keys:
                return False
            node = ctx.settings
            *path, last_key = keys
            for key in path:
                entry = node.map_values.get(key)
                if entry is None or not entry.rank.get_dir():
                    return False
                node = entry.value
            if is_set:
                node.set_key(last_key, Bijson(vals[index]))
            else:
                node.clear_key(last_key)
        return True

    # loading

    def _backscan_constraint_path(self, lb_hash: str) -> None:
        working = lb_hash
        self.constraint_path_lbs.add(lb_hash)
        while True:
            block = self.tree.get_chain().get(working)
            parents = block.p_hashes if block is not None else set()
            if len(parents) == 1:
                working = next(iter(parents))
                continue
            self.constraint_path_fbs.add(working)
            for parent in sorted(parents):
                if parent not in self.constraint_path_lbs:
                    self._backscan_constraint_path(parent)
            return

    def _intraserver_children(self, block_hash: str) -> set[str]:
        chain = self.tree.get_chain()
        block = chain.get(block_hash)
        if block is None:
            return set()
        return {
            h for h in block.c_hashes if h in chain and chain[h].s_trip == self.s_trip
        }

    def _digest(self, block_hash: str, ctx: BranchContext) -> Message | None:
        block = self.tree.get_chain().get(block_hash)
        if block is None:
            return None
        try:
            content, signature = unlock_message(
                b64_decode(block.cont), False, self.raw_aes_key
            )
            claf_data = json.loads(content.decode("utf-8"))
        except (CryptoError, ValueError):
            _log.info("[Server.load_branch_forward] cannot read block %s", block_hash)
            return None
        if not isinstance(claf_data, dict):
            return None
        content_hash = b64_encode(
            hash_bytes(content_hash_concat(block.time, block.s_trip, block.p_hashes))
        )
        extra: dict[str, Any] = {}
        try:
            applied = self.apply_data(ctx, extra, claf_data, content, signature, content_hash)
        except (KeyError, TypeError, ValueError, IndexError):
            applied = False
        if not applied:
            _log.info("[Server.load_branch_forward] Failure to apply data")
            return None
        return Message(
            hash=block.hash,
            supertype=str(claf_data.get("st", ""))[:1],
            type=claf_data.get("t", ""),
            data=claf_data.get("d"),
            extra=extra,
        )

    def _load_branch_forward(self, fb_hash: str) -> None:
        target = self.branches.setdefault(fb_hash, Branch())
        target.first_hash = fb_hash
        for child_fb in target.c_branch_fbs:
            child = self.branches.get(child_fb)
            if child is not None:
                child.p_branch_fbs.discard(fb_hash)
        target.c_branch_fbs = set()
        target.messages = []

        ctx = BranchContext(
            [self.branches[p].ctx for p in sorted(target.p_branch_fbs) if p in self.branches]
        )

        working = fb_hash
        seeds: set[str] = set()
        while True:
            message = self._digest(working, ctx)
            if message is not None:
                target.messages.append(message)
            if working in self.constraint_heads:
                seeds = set()
                break
            children = self._intraserver_children(working)
            if len(children) == 1:
                working = next(iter(children))
            else:
                seeds = children
                break

        target.ctx = ctx
        for seed in sorted(seeds):
            if self.constraint_heads and seed not in self.constraint_path_fbs:
                continue
            seed_branch = self.branches.setdefault(seed, Branch(first_hash=seed))
            seed_branch.first_hash = seed
            target.c_branch_fbs.add(seed)
            seed_branch.p_branch_fbs.add(fb_hash)
            seed_block = self.tree.get_chain().get(seed)
            if seed_block is not None and len(seed_branch.p_branch_fbs) == (
                self.tree.intraserver_parent_count(seed_block)
            ):
                self._load_branch_forward(seed)

    def add_block(self, block_hash: str) -> None:
        """Reload the branch that a newly added block belongs to."""
        if self.constraint_heads:
            return
        working = block_hash
        while True:
            chain = self.tree.get_chain()
            block = chain.get(working)
            if block is None:
                return
            intra = {
                h for h in block.p_hashes if h in chain and chain[h].s_trip == self.s_trip
            }
            if len(intra) == 1:
                working = next(iter(intra))
            else:
                self._load_branch_forward(working)
                return

    def add_batch(self, hashes: Iterable[str]) -> None:
        """Reload from every block of the batch whose parents lie outside it."""
        batch = set(hashes)
        chain = self.tree.get_chain()
        extern_only = {
            h
            for h in batch
            if h in chain and not (chain[h].p_hashes & batch)
        }
        for block_hash in sorted(extern_only):
            self.add_block(block_hash)

    # sending

    def send_message(
        self,
        author: User,
        content: Any,
        st: str,
        t: str = "",
        p_hashes: Iterable[str] | None = None,
    ) -> str:
        """Sign, encrypt and mine a message; return the new block's hash."""
        if self.constraint_heads:
            raise RuntimeError("a server with constraint heads is read-only")
        sending_time = get_raw_time()
        target_p_hashes = self.tree.find_p_hashes(self.s_trip, set(p_hashes or ()))
        content_hash = b64_encode(
            hash_bytes(content_hash_concat(sending_time, self.s_trip, target_p_hashes))
        )
        full_msg: dict[str, Any] = {
            "a": author.trip,
            "h": content_hash,
            "st": st[:1],
            "d": content,
        }
        if t:
            full_msg["t"] = t
        locked = lock_message(
            json.dumps(full_msg, sort_keys=True).encode("utf-8"),
            False,
            b64_decode(author.prikeys.dsa),
            self.raw_aes_key,
        )
        return self.tree.gen_block(
            b64_encode(locked), self.s_trip, sending_time, target_p_hashes, author.trip
        )


def _new_rank():
    from .birank import Birank

    return Birank()


def _new_role():
    from .branch import Role

    return Role()