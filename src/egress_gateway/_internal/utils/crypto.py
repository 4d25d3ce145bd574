import base64
from typing import Tuple

from cryptography.hazmat.primitives import serialization as crypto_serialization
from cryptography.hazmat.primitives.asymmetric import x25519


def generate_wireguard_key_pair() -> Tuple[str, str]:
    """
    Returns a private and a public wireguard key in the base64 format `wg` uses.
    """
    key = x25519.X25519PrivateKey.generate()
    private_bytes = key.private_bytes(
        crypto_serialization.Encoding.Raw,
        crypto_serialization.PrivateFormat.Raw,
        crypto_serialization.NoEncryption(),
    )
    public_bytes = key.public_key().public_bytes(
        crypto_serialization.Encoding.Raw,
        crypto_serialization.PublicFormat.Raw,
    )
    return base64.b64encode(private_bytes).decode(), base64.b64encode(public_bytes).decode()


def get_wireguard_public_key(private_key: str) -> str:
    key = x25519.X25519PrivateKey.from_private_bytes(base64.b64decode(private_key))
    public_bytes = key.public_key().public_bytes(
        crypto_serialization.Encoding.Raw,
        crypto_serialization.PublicFormat.Raw,
    )
    return base64.b64encode(public_bytes).decode()
