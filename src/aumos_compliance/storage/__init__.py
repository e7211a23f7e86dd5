# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

from .interface import ComplianceStorage
from .memory import MemoryStorage
from .file import FileStorage

__all__ = ["ComplianceStorage", "MemoryStorage", "FileStorage"]
