"""
Unit tests for credential encryption and deploy key generation.
"""

import pytest
from cryptography.fernet import InvalidToken
from cryptography.hazmat.primitives.serialization import load_ssh_private_key, load_ssh_public_key

from sourcecontrol.config import Settings
from sourcecontrol.core.security import (
    decrypt_credential_data,
    encrypt_credential_data,
    generate_ssh_key_pair,
)


class TestCredentialEncryption:

    def test_round_trip(self, settings):
        encrypted = encrypt_credential_data({"apiKey": "s3cret"}, settings)

        assert "s3cret" not in encrypted
        assert decrypt_credential_data(encrypted, settings) == {"apiKey": "s3cret"}

    def test_other_secret_cannot_decrypt(self, settings, tmp_path):
        encrypted = encrypt_credential_data({"apiKey": "s3cret"}, settings)
        other = Settings(user_folder=tmp_path, secret_key="a-completely-different-secret-key-value")

        with pytest.raises(InvalidToken):
            decrypt_credential_data(encrypted, other)


class TestDeployKeys:

    def test_key_pair_is_openssh_ed25519(self):
        private_key, public_key = generate_ssh_key_pair(comment="deploy@instance")

        assert public_key.startswith("ssh-ed25519 ")
        assert public_key.endswith(" deploy@instance")
        loaded = load_ssh_private_key(private_key.encode(), password=None)
        key_material = " ".join(public_key.split()[:2]).encode()
        assert load_ssh_public_key(key_material).public_bytes_raw() == loaded.public_key().public_bytes_raw()

    def test_each_call_generates_a_new_key(self):
        assert generate_ssh_key_pair()[1] != generate_ssh_key_pair()[1]
