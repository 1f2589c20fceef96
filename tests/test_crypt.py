import pytest

from concord.crypt import (
    CryptoError,
    aes_decrypt,
    aes_encrypt,
    aes_keygen,
    dsa_keygen,
    dsa_sign,
    dsa_verify,
    lock_message,
    rsa_decrypt,
    rsa_encrypt,
    rsa_keygen,
    unlock_message,
)

PLAIN = b"hunting for dem bugs"


@pytest.fixture(scope="module")
def rsa_pair():
    return rsa_keygen()


@pytest.fixture(scope="module")
def dsa_pair():
    return dsa_keygen()


def test_aes_key_length():
    assert len(aes_keygen()) == 32


def test_aes_round_trip():
    key = aes_keygen()
    cipher, nonce = aes_encrypt(key, PLAIN)
    assert len(nonce) == 16
    assert len(cipher) == len(PLAIN) + 12
    assert aes_decrypt(key, nonce, cipher) == PLAIN


def test_aes_tampered_cipher_raises():
    key = aes_keygen()
    cipher, nonce = aes_encrypt(key, PLAIN)
    tampered = bytes([cipher[0] ^ 1]) + cipher[1:]
    with pytest.raises(CryptoError):
        aes_decrypt(key, nonce, tampered)


def test_aes_wrong_key_raises():
    cipher, nonce = aes_encrypt(aes_keygen(), PLAIN)
    with pytest.raises(CryptoError):
        aes_decrypt(aes_keygen(), nonce, cipher)


def test_aes_invalid_key_size_raises():
    with pytest.raises(CryptoError):
        aes_encrypt(b"short", PLAIN)


def test_rsa_round_trip(rsa_pair):
    private_key, public_key = rsa_pair
    message = b"f" * 410
    cipher = rsa_encrypt(public_key, message)
    assert len(cipher) == 512
    assert rsa_decrypt(private_key, cipher) == message


def test_rsa_message_too_long(rsa_pair):
    _, public_key = rsa_pair
    with pytest.raises(CryptoError):
        rsa_encrypt(public_key, b"f" * 600)


def test_rsa_bad_key_raises():
    with pytest.raises(CryptoError):
        rsa_encrypt(b"not a key", PLAIN)


def test_dsa_sign_and_verify(dsa_pair):
    private_key, public_key = dsa_pair
    signature = dsa_sign(private_key, PLAIN)
    assert len(signature) == 64
    assert dsa_verify(public_key, signature, PLAIN) is True


def test_dsa_rejects_other_message(dsa_pair):
    private_key, public_key = dsa_pair
    signature = dsa_sign(private_key, PLAIN)
    assert dsa_verify(public_key, signature, PLAIN + b"!") is False


def test_dsa_rejects_bad_signature_length(dsa_pair):
    private_key, public_key = dsa_pair
    signature = dsa_sign(private_key, PLAIN)
    assert dsa_verify(public_key, signature[:-1], PLAIN) is False


def test_dsa_wrong_key_type_raises(rsa_pair):
    private_key, _ = rsa_pair
    with pytest.raises(CryptoError):
        dsa_sign(private_key, PLAIN)


def test_lock_unlock_asymmetric(rsa_pair, dsa_pair):
    rsa_private, rsa_public = rsa_pair
    dsa_private, dsa_public = dsa_pair
    message = b"f" * 4170
    locked = lock_message(message, True, dsa_private, b"", rsa_public)
    assert len(locked) == 4170 + 64 + 12 + 512 + 16
    plaintext, signature = unlock_message(locked, True, b"", rsa_private)
    assert plaintext == message
    assert dsa_verify(dsa_public, signature, plaintext) is True


def test_lock_unlock_symmetric(dsa_pair):
    dsa_private, dsa_public = dsa_pair
    key = aes_keygen()
    locked = lock_message(PLAIN, False, dsa_private, key)
    assert len(locked) == len(PLAIN) + 64 + 12 + 16
    plaintext, signature = unlock_message(locked, False, key)
    assert plaintext == PLAIN
    assert dsa_verify(dsa_public, signature, plaintext) is True


def test_unlock_with_wrong_key_raises(dsa_pair):
    dsa_private, _ = dsa_pair
    locked = lock_message(PLAIN, False, dsa_private, aes_keygen())
    with pytest.raises(CryptoError):
        unlock_message(locked, False, aes_keygen())


def test_unlock_too_short_raises():
    with pytest.raises(CryptoError):
        unlock_message(b"tiny", False, aes_keygen())