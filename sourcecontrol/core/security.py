"""
Security Utilities

Fernet encryption for credential data at rest and deploy key generation
for SSH access to the remote repository.
"""

import base64
import json
from typing import Any

from cryptography.fernet import Fernet
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from sourcecontrol.config import Settings, get_settings


# =============================================================================
# Credential Data Encryption
# =============================================================================


def _get_fernet_key(settings: Settings | None = None) -> bytes:
    """
    Derive a Fernet-compatible key from the application secret using HKDF.

    Returns:
        32-byte urlsafe base64 key suitable for Fernet encryption
    """
    settings = settings or get_settings()

    kdf = HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=settings.fernet_salt.encode(),
        info=b"sourcecontrol-credentials-encryption",
    )
    return base64.urlsafe_b64encode(kdf.derive(settings.secret_key.encode()))


def encrypt_secret(plaintext: str, settings: Settings | None = None) -> str:
    """Encrypt a value for storage in the database."""
    f = Fernet(_get_fernet_key(settings))
    return f.encrypt(plaintext.encode()).decode()


def decrypt_secret(encrypted: str, settings: Settings | None = None) -> str:
    """Decrypt a value read from the database."""
    f = Fernet(_get_fernet_key(settings))
    return f.decrypt(encrypted.encode()).decode()


def encrypt_credential_data(data: dict[str, Any], settings: Settings | None = None) -> str:
    return encrypt_secret(json.dumps(data), settings)


def decrypt_credential_data(encrypted: str, settings: Settings | None = None) -> dict[str, Any]:
    return json.loads(decrypt_secret(encrypted, settings))


# =============================================================================
# Deploy Keys
# =============================================================================


def generate_ssh_key_pair(comment: str = "source-control") -> tuple[str, str]:
    """
    Generate an Ed25519 key pair for repository access.

    Returns:
        (private_key, public_key) in OpenSSH format
    """
    private_key = Ed25519PrivateKey.generate()

    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.OpenSSH,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()

    public_ssh = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.OpenSSH,
        format=serialization.PublicFormat.OpenSSH,
    ).decode()

    return private_pem, f"{public_ssh} {comment}"
