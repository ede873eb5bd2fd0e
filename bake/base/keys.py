"""SSH key helpers built on :mod:`cryptography`."""

from __future__ import annotations

import base64
import hashlib

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

RSA_KEY_SIZE = 2048


def load_private_key(key_data: bytes) -> rsa.RSAPrivateKey:
    """Load a PEM or OpenSSH private key without a passphrase.

    Raises:
        ValueError: If the data is not a usable RSA private key.
    """
    if b"BEGIN OPENSSH PRIVATE KEY" in key_data:
        key = serialization.load_ssh_private_key(key_data, password=None)
    else:
        key = serialization.load_pem_private_key(key_data, password=None)
    if not isinstance(key, rsa.RSAPrivateKey):
        raise ValueError("only RSA private keys are supported")
    return key


def public_openssh(private_key: rsa.RSAPrivateKey) -> str:
    """Return the ``ssh-rsa AAAA...`` form of the key's public half."""
    public_bytes = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.OpenSSH, format=serialization.PublicFormat.OpenSSH
    )
    return public_bytes.decode()


def generate_keypair() -> tuple[str, str]:
    """Generate a new RSA keypair.

    Returns:
        ``(private_pem, public_openssh)``.
    """
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=RSA_KEY_SIZE)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return private_pem.decode(), public_openssh(private_key)


def fingerprint(public_key: str) -> str:
    """MD5 fingerprint of an OpenSSH public key, colon separated."""
    key_data = base64.b64decode(public_key.split()[1])
    md5_hash = hashlib.md5(key_data).hexdigest()  # nosec: B324
    return ":".join(md5_hash[i : i + 2] for i in range(0, len(md5_hash), 2))


def decrypt_password(encrypted_password: str, private_key_pem: str) -> str:
    """Decrypt a base64, PKCS#1 v1.5 encrypted administrator password.

    Raises:
        ValueError: If the password cannot be decoded or decrypted.
    """
    try:
        ciphertext = base64.b64decode(encrypted_password)
    except ValueError as e:
        raise ValueError(f"Failed to base64 decode encrypted password: {e}") from e
    key = load_private_key(private_key_pem.encode())
    try:
        return key.decrypt(ciphertext, padding.PKCS1v15()).decode()
    except ValueError as e:
        raise ValueError(f"Failed to decrypt password: {e}") from e
