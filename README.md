# concord

concord stores chat messages as blocks in a tree of hashes. Each block is
mined with a small proof of work, points at up to three parent blocks and
belongs to one "server", identified by a 24-character trip derived from the
server's AES key. A `Server` replays its blocks in order to rebuild members,
roles and settings, and accepts only messages that are properly signed by
members holding the right permissions.

## Installing

```
pip install .
```

For running the tests:

```
pip install .[test]
pytest
```

## Modules

- `concord.strops` — `b64_encode` / `b64_decode`, `hex_encode` /
  `hex_decode` (upper-case hex), SHA-256 hashing with `hash_bytes` and
  `hash_file`, `random_bytes`, and `trip`, a short base64 fingerprint of
  data (24 characters by default).
- `concord.miner` — `Miner`, which finds a nonce whose hex SHA-256 digest
  starts with the required number of zeros.
- `concord.crypt` — AES-GCM (`aes_keygen`, `aes_encrypt`, `aes_decrypt`),
  RSA-OAEP (`rsa_keygen`, `rsa_encrypt`, `rsa_decrypt`) and DSA
  (`dsa_keygen`, `dsa_sign`, `dsa_verify`), with keys as DER bytes. On top
  of them, `lock_message` signs a message and encrypts it either with a
  shared AES key or with a fresh AES key sealed under an RSA public key;
  `unlock_message` returns `(message, signature)`. Unusable keys or cipher
  texts raise `CryptoError`.
- `concord.block` — the `Block` record, its JSON form (`block_to_json`,
  `json_to_block`), 8-byte little-endian time encoding, `hash_concat`,
  `verify_block` and `construct_block`, which mines a new block.
- `concord.tree` — `Tree`, the block store: `gen_block`, `chain_push`,
  `batch_push`, parent selection (`find_p_hashes`), graph queries and
  `verify_chain`. `User` and `Keypair` describe identities;
  `Tree.declare_user` publishes a user's signed public keys and
  `Tree.search_user` finds such declarations.
- `concord.birank`, `concord.bijson`, `concord.strman`, `concord.branch` —
  ranked values (`Birank`), mergeable settings documents (`Bijson`), role
  feature bit sets, and the `Member`, `Role`, `Message`, `BranchContext` and
  `Branch` records a server is rebuilt from.
- `concord.server` — `Server`, which follows one server's blocks in a tree.

## Storage

`Tree(directory)` links the tree to an existing directory (a missing one
raises `ValueError`), loads every `*.block` file in it, and from then on
writes each pushed block there as `<hash>.block` in its JSON form. A tree
made with `Tree()` lives in memory only.

## Example

```python
from concord.crypt import aes_keygen
from concord.strops import b64_encode, trip
from concord.tree import Tree

tree = Tree()
tree.set_pow_req(3)

server_trip = trip(b64_encode(aes_keygen()), 24)
tree.gen_block("first message", server_trip)
tree.gen_block("second message", server_trip)

assert tree.verify_chain()
```

Locking a message for a recipient:

```python
from concord.crypt import dsa_keygen, dsa_verify, lock_message, rsa_keygen, unlock_message

dsa_private, dsa_public = dsa_keygen()
rsa_private, rsa_public = rsa_keygen()

locked = lock_message(b"hello", True, dsa_private, b"", rsa_public)
plaintext, signature = unlock_message(locked, True, b"", rsa_private)
assert dsa_verify(dsa_public, signature, plaintext)
```

Running a server on a tree:

```python
from concord.crypt import aes_keygen
from concord.server import Server
from concord.strops import b64_encode
from concord.tree import Tree, User

tree = Tree()
tree.set_pow_req(2)
owner = User.generate()
server = Server(tree, b64_encode(aes_keygen()), owner)
server.send_message(owner, {"c": "hello"}, "c")
print(len(server.get_root_branch().messages))
```

When a server has no root block in the tree yet, creating the `Server`
sends the `nserv` message that makes its owner the member with the
`creator` role. Message kinds a server applies: `c` (content), `a` with
`nserv`, `invite` or `rem`, `r` with `crole`, `grole` or `rrole`, and `s`
with `sset` or `cset`. Rejected messages are left out of the branch and
reported through the `concord.server` logger.

Key generation uses 4096-bit RSA and 3072-bit DSA keys, so creating users
takes a moment.

## What it does not do

concord has no networking: trees are not exchanged between machines, and
there is no peer connection or synchronisation between nodes. Blocks reach a
tree only through its own methods or through `.block` files in its
directory. There is no command-line program either; the package is used as
a library.