import pytest

from concord.branch import BranchContext
from concord.crypt import aes_keygen
from concord.server import Server
from concord.strops import b64_encode
from concord.tree import Tree, User


@pytest.fixture(scope="module")
def user():
    return User.generate()


@pytest.fixture
def tree():
    t = Tree()
    t.set_pow_req(2)
    return t


@pytest.fixture
def aes_key():
    return b64_encode(aes_keygen())


def test_new_server_on_empty_dir(tmp_path, user, aes_key):
    example = Tree(tmp_path)
    assert len(example.get_chain()) == 0
    example.set_pow_req(3)
    server = Server(example, aes_key, user)
    root = server.get_root_branch()
    assert len(root.messages) == 1
    assert example.verify_chain() is True
    assert len(list(tmp_path.glob("*.block"))) == 1


def test_root_message_is_nserv(tree, user, aes_key):
    server = Server(tree, aes_key, user)
    msg = server.get_root_branch().messages[0]
    assert msg.supertype == "a"
    assert msg.type == "nserv"
    assert msg.data["cms"]["sig_pubk"] == user.pubkeys.dsa
    assert msg.hash == server.root_fb


def test_send_chat_message(tree, user, aes_key):
    server = Server(tree, aes_key, user)
    server.send_message(user, {"data": "test_message"}, "c")
    messages = server.get_root_branch().messages
    assert [m.supertype for m in messages] == ["a", "c"]
    assert messages[1].data == {"data": "test_message"}
    assert tree.verify_chain() is True


def test_reload_existing_server(tree, user, aes_key):
    first = Server(tree, aes_key, user)
    first.send_message(user, {"x": 1}, "c")
    second = Server(tree, aes_key, user)
    assert second.root_fb == first.root_fb
    assert len(second.get_root_branch().messages) == 2


def test_apply_data_hash_mismatch(tree, user, aes_key):
    server = Server(tree, aes_key, user)
    ctx = BranchContext([])
    assert server.apply_data(ctx, {}, {"h": "abc"}, b"", b"", "xyz") is False


def test_create_member(tree, user, aes_key):
    server = Server(tree, aes_key, user)
    member = server.create_member(user.pubkeys, ["creator"])
    assert member.user_trip == user.trip
    assert member.roles_ranks["creator"].get_dir() is True
    assert server.known_users[user.trip].pubkeys == user.pubkeys


def test_heads_make_server_read_only(tree, user, aes_key):
    server = Server(tree, aes_key, user)
    constrained = Server(tree, aes_key, user, heads={server.root_fb})
    assert len(constrained.get_root_branch().messages) == 1
    with pytest.raises(RuntimeError):
        constrained.send_message(user, {"x": 1}, "c")


def test_settings_message_updates_context(tree, user, aes_key):
    server = Server(tree, aes_key, user)
    server.send_message(user, {"sn": [["title"]], "po": [], "sv": ["hello"]}, "s", "sset")
    root = server.get_root_branch()
    assert len(root.messages) == 2
    assert root.ctx.settings.dump() == {"title": "hello"}