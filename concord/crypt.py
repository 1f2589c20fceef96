"""AES-GCM, RSA-OAEP and DSA primitives, and signed message locking."""

from __future__ import annotations

import os

from cryptography.exceptions import InvalidSignature, InvalidTag, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import dsa, padding, rsa
from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
    encode_dss_signature,
)
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

AES_KEYLEN = 32
AES_NONCELEN = 16
AES_TAGLEN = 12
DSA_SIGLEN = 64
DSA_KEYLEN = 3072
RSA_KEYLEN = 4096

_KEY_ERRORS = (ValueError, TypeError, UnsupportedAlgorithm)


class CryptoError(Exception):
    """Raised when a key, cipher text or parameter is unusable."""


# AES


def aes_keygen() -> bytes:
    """Return a random 256-bit AES key."""
    return os.urandom(AES_KEYLEN)


def aes_encrypt(key: bytes, message: bytes) -> tuple[bytes, bytes]:
    """Encrypt with AES-GCM; return ``(cipher_with_tag, nonce)``."""
    nonce = os.urandom(AES_NONCELEN)
    try:
        encryptor = Cipher(algorithms.AES(key), modes.GCM(nonce)).encryptor()
    except ValueError as err:
        raise CryptoError(str(err)) from err
    cipher = encryptor.update(message) + encryptor.finalize()
    return cipher + encryptor.tag[:AES_TAGLEN], nonce


def aes_decrypt(key: bytes, nonce: bytes, cipher: bytes) -> bytes:
    """Decrypt and authenticate an AES-GCM cipher text with a 12-byte tag."""
    if len(cipher) < AES_TAGLEN:
        raise CryptoError("cipher text is shorter than the authentication tag")
    body, tag = cipher[:-AES_TAGLEN], cipher[-AES_TAGLEN:]
    try:
        decryptor = Cipher(
            algorithms.AES(key), modes.GCM(nonce, tag, min_tag_length=AES_TAGLEN)
        ).decryptor()
    except ValueError as err:
        raise CryptoError(str(err)) from err
    try:
        return decryptor.update(body) + decryptor.finalize()
    except InvalidTag as err:
        raise CryptoError("message authentication failed") from err


# RSA

_OAEP = padding.OAEP(
    mgf=padding.MGF1(algorithm=hashes.SHA1()), algorithm=hashes.SHA1(), label=None
)


def _der_private(key) -> bytes:
    return key.private_bytes(
        serialization.Encoding.DER,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )


def _der_public(key) -> bytes:
    return key.public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def _load_private(encoded: bytes, kind):
    try:
        key = serialization.load_der_private_key(encoded, None)
    except _KEY_ERRORS as err:
        raise CryptoError(f"cannot load private key: {err}") from err
    if not isinstance(key, kind):
        raise CryptoError("private key has the wrong algorithm")
    return key


def _load_public(encoded: bytes, kind):
    try:
        key = serialization.load_der_public_key(encoded)
    except _KEY_ERRORS as err:
        raise CryptoError(f"cannot load public key: {err}") from err
    if not isinstance(key, kind):
        raise CryptoError("public key has the wrong algorithm")
    return key


def rsa_keygen() -> tuple[bytes, bytes]:
    """Generate a 4096-bit RSA key pair; return DER ``(private, public)``."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=RSA_KEYLEN)
    return _der_private(private_key), _der_public(private_key.public_key())


def rsa_encrypt(public_key: bytes, message: bytes) -> bytes:
    """Encrypt with RSA-OAEP (SHA-1) under a DER public key."""
    key = _load_public(public_key, rsa.RSAPublicKey)
    try:
        return key.encrypt(message, _OAEP)
    except ValueError as err:
        raise CryptoError(str(err)) from err


def rsa_decrypt(private_key: bytes, cipher: bytes) -> bytes:
    """Decrypt an RSA-OAEP (SHA-1) cipher text with a DER private key."""
    key = _load_private(private_key, rsa.RSAPrivateKey)
    try:
        return key.decrypt(cipher, _OAEP)
    except ValueError as err:
        raise CryptoError(str(err)) from err


# DSA


def _q_size(key) -> int:
    return (key.parameters().parameter_numbers().q.bit_length() + 7) // 8


def dsa_keygen() -> tuple[bytes, bytes]:
    """Generate a 3072-bit DSA key pair; return DER ``(private, public)``."""
    private_key = dsa.generate_private_key(key_size=DSA_KEYLEN)
    return _der_private(private_key), _der_public(private_key.public_key())


def dsa_sign(private_key: bytes, message: bytes) -> bytes:
    """Sign with DSA/SHA-1; the signature is ``r || s`` at fixed width."""
    key = _load_private(private_key, dsa.DSAPrivateKey)
    r, s = decode_dss_signature(key.sign(message, hashes.SHA1()))
    size = _q_size(key)
    return r.to_bytes(size, "big") + s.to_bytes(size, "big")


def dsa_verify(public_key: bytes, signature: bytes, message: bytes) -> bool:
    """Return whether ``signature`` is a valid ``r || s`` DSA signature of ``message``."""
    key = _load_public(public_key, dsa.DSAPublicKey)
    size = _q_size(key)
    if len(signature) != 2 * size:
        return False
    r = int.from_bytes(signature[:size], "big")
    s = int.from_bytes(signature[size:], "big")
    try:
        key.verify(encode_dss_signature(r, s), message, hashes.SHA1())
    except (InvalidSignature, ValueError):
        return False
    return True


# Message locking


def _split_tail(data: bytes, length: int) -> tuple[bytes, bytes]:
    if len(data) < length:
        raise CryptoError("locked message is too short")
    return data[:-length] if length else data, data[len(data) - length:]


def lock_message(
    message: bytes,
    use_asymm: bool,
    dsa_private_key: bytes,
    aes_key: bytes = b"",
    rsa_public_key: bytes = b"",
) -> bytes:
    """Sign then encrypt ``message``.

    The result is ``cipher [+ rsa(aes_key)] + nonce``; with ``use_asymm`` a
    fresh AES key is generated and sent under the RSA public key.
    """
    signature = dsa_sign(dsa_private_key, message)
    if use_asymm:
        aes_key = aes_keygen()
    cipher, nonce = aes_encrypt(aes_key, message + signature)
    wrapped_key = rsa_encrypt(rsa_public_key, aes_key) if use_asymm else b""
    return cipher + wrapped_key + nonce


def unlock_message(
    ciphertext: bytes,
    use_asymm: bool,
    aes_key: bytes = b"",
    rsa_private_key: bytes = b"",
) -> tuple[bytes, bytes]:
    """Undo :func:`lock_message`; return ``(message, signature)``."""
    rest, nonce = _split_tail(ciphertext, AES_NONCELEN)
    if use_asymm:
        rest, wrapped_key = _split_tail(rest, RSA_KEYLEN // 8)
        aes_key = rsa_decrypt(rsa_private_key, wrapped_key)
    plaintext = aes_decrypt(aes_key, nonce, rest)
    return _split_tail(plaintext, DSA_SIGLEN)