# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
"""
Field-level encryption for sensitive audit entry fields.

The logger treats the encryptor as an opaque collaborator: it hands over a
plaintext and a context tag and stores whatever envelope comes back. The
context tag is bound to the ciphertext, so an envelope copied from
``before_state`` into ``after_state`` fails to decrypt.

Usage::

    encryptor = AesGcmEncryptor(AesGcmEncryptor.generate_key())
    envelope = encryptor.encrypt('{"role": "auditor"}', "audit:before_state")
    encryptor.decrypt(envelope, "audit:before_state")
"""
from __future__ import annotations

import base64
import json
import os
from abc import ABC, abstractmethod
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

_NONCE_SIZE = 12
_TAG_SIZE = 16
_ALGORITHM = "AES-256-GCM"


class EncryptedEnvelope(BaseModel):
    """
    Ciphertext as stored inside an audit entry.

    Attributes:
        algorithm: Cipher identifier.
        context_tag: Tag the ciphertext is bound to.
        token: ``base64(nonce || ciphertext || tag)``.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    algorithm: str = _ALGORITHM
    context_tag: str
    token: str

    @classmethod
    def is_envelope(cls, value: Any) -> bool:
        """Return True if ``value`` is an envelope in its stored dict form."""
        return (
            isinstance(value, dict)
            and value.get("algorithm") == _ALGORITHM
            and "token" in value
            and "contextTag" in value
        )


class Encryptor(ABC):
    """Contract for encryption collaborators."""

    @abstractmethod
    def encrypt(self, plaintext: str, context_tag: str) -> EncryptedEnvelope:
        """Encrypt ``plaintext`` and bind it to ``context_tag``."""
        ...

    @abstractmethod
    def decrypt(self, envelope: EncryptedEnvelope, context_tag: str) -> str:
        """
        Decrypt ``envelope``.

        Raises:
            ValueError: If the envelope is malformed, was tampered with, or was
                bound to a different context tag.
        """
        ...


class AesGcmEncryptor(Encryptor):
    """
    AES-256-GCM encryptor with a fresh 96-bit nonce per call.

    The context tag is passed as associated data. Instances hold no mutable
    state and are safe to share between tasks and threads.
    """

    def __init__(self, key: bytes) -> None:
        if len(key) != 32:
            raise ValueError(f"AES-256 requires a 32-byte key, got {len(key)} bytes")
        self._aesgcm = AESGCM(key)

    @staticmethod
    def generate_key() -> bytes:
        """Return a new random 256-bit key."""
        return AESGCM.generate_key(bit_length=256)

    @classmethod
    def from_base64(cls, encoded_key: str) -> AesGcmEncryptor:
        """Build an encryptor from a base64-encoded key."""
        return cls(base64.b64decode(encoded_key))

    def encrypt(self, plaintext: str, context_tag: str) -> EncryptedEnvelope:
        nonce = os.urandom(_NONCE_SIZE)
        ct = self._aesgcm.encrypt(nonce, plaintext.encode("utf-8"), context_tag.encode("utf-8"))
        return EncryptedEnvelope(
            context_tag=context_tag,
            token=base64.b64encode(nonce + ct).decode("ascii"),
        )

    def decrypt(self, envelope: EncryptedEnvelope, context_tag: str) -> str:
        raw = base64.b64decode(envelope.token)
        if len(raw) < _NONCE_SIZE + _TAG_SIZE:
            raise ValueError("Invalid encrypted token: too short")
        nonce, ct = raw[:_NONCE_SIZE], raw[_NONCE_SIZE:]
        try:
            plaintext = self._aesgcm.decrypt(nonce, ct, context_tag.encode("utf-8"))
        except InvalidTag as exc:
            raise ValueError("Encrypted token failed authentication") from exc
        return plaintext.decode("utf-8")


# ---------------------------------------------------------------------------
# JSON value helpers used by the audit logger
# ---------------------------------------------------------------------------


def seal_value(encryptor: Encryptor, value: Any, context_tag: str) -> dict[str, Any]:
    """Encrypt a JSON-serialisable value into the stored envelope dict."""
    plaintext = json.dumps(value, sort_keys=True, default=str)
    return encryptor.encrypt(plaintext, context_tag).model_dump(by_alias=True)


def open_value(encryptor: Encryptor, stored: Any, context_tag: str) -> Any:
    """Reverse :func:`seal_value`. Values that are not envelopes pass through."""
    if not EncryptedEnvelope.is_envelope(stored):
        return stored
    envelope = EncryptedEnvelope.model_validate(stored)
    return json.loads(encryptor.decrypt(envelope, context_tag))
