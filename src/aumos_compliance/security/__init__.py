# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
from __future__ import annotations

from aumos_compliance.security.encryption import (
    AesGcmEncryptor,
    EncryptedEnvelope,
    Encryptor,
    open_value,
    seal_value,
)

__all__ = [
    "AesGcmEncryptor",
    "EncryptedEnvelope",
    "Encryptor",
    "open_value",
    "seal_value",
]
