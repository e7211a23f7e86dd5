# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation
"""
File storage backend.

Entries are stored one JSON object per line (NDJSON / JSON Lines format) in
an append-only file that is never truncated or rewritten. The permission
catalog lives in a separate JSON document that is replaced atomically on
every save.

Reading always parses the entire file from disk so that the in-process view
stays consistent with anything written by concurrent processes. A line whose
id already appeared earlier in the file is skipped, so an append that is
retried after landing late is counted once.
"""
from __future__ import annotations

import json
from pathlib import Path

import aiofiles
import aiofiles.os
from pydantic import ValidationError as PydanticValidationError

from aumos_compliance.audit.query import AuditTrailFilter, apply_filter
from aumos_compliance.audit.record import AuditTrailEntry
from aumos_compliance.catalog.permission import CatalogSnapshot
from aumos_compliance.errors import StorageUnavailable
from aumos_compliance.storage.interface import ComplianceStorage


class FileStorage(ComplianceStorage):
    """
    Persistent NDJSON entry log plus a JSON catalog document.

    Parameters
    ----------
    entries_path:
        Path to the NDJSON entry file. Created on first append.
    catalog_path:
        Path to the catalog document. Defaults to ``<entries_path>.catalog.json``.
    """

    def __init__(self, entries_path: str | Path, catalog_path: str | Path | None = None) -> None:
        self._entries_path = Path(entries_path)
        if catalog_path is None:
            catalog_path = self._entries_path.with_name(self._entries_path.name + ".catalog.json")
        self._catalog_path = Path(catalog_path)

    async def append(self, entry: AuditTrailEntry) -> None:
        line = json.dumps(entry.model_dump(mode="json", by_alias=True)) + "\n"
        async with aiofiles.open(self._entries_path, mode="a", encoding="utf-8") as file_handle:
            await file_handle.write(line)

    async def query(self, audit_filter: AuditTrailFilter) -> list[AuditTrailEntry]:
        return apply_filter(await self.all(), audit_filter)

    async def all(self) -> list[AuditTrailEntry]:
        if not await aiofiles.os.path.exists(self._entries_path):
            return []

        entries: list[AuditTrailEntry] = []
        seen: set[str] = set()
        async with aiofiles.open(self._entries_path, mode="r", encoding="utf-8") as file_handle:
            line_number = 0
            async for line in file_handle:
                line_number += 1
                stripped = line.strip()
                if not stripped:
                    continue
                try:
                    entry = AuditTrailEntry.model_validate(json.loads(stripped))
                except (json.JSONDecodeError, PydanticValidationError) as exc:
                    raise StorageUnavailable(
                        f"Corrupt audit entry at {self._entries_path}:{line_number}."
                    ) from exc
                if entry.id in seen:
                    continue
                seen.add(entry.id)
                entries.append(entry)
        return entries

    async def count(self) -> int:
        return len(await self.all())

    async def load_catalog(self) -> CatalogSnapshot | None:
        if not await aiofiles.os.path.exists(self._catalog_path):
            return None
        async with aiofiles.open(self._catalog_path, mode="r", encoding="utf-8") as file_handle:
            raw = await file_handle.read()
        try:
            return CatalogSnapshot.model_validate_json(raw)
        except PydanticValidationError as exc:
            raise StorageUnavailable(f"Corrupt permission catalog at {self._catalog_path}.") from exc

    async def save_catalog(self, snapshot: CatalogSnapshot) -> None:
        temp_path = self._catalog_path.with_name(self._catalog_path.name + ".tmp")
        payload = snapshot.model_dump_json(by_alias=True, indent=2)
        async with aiofiles.open(temp_path, mode="w", encoding="utf-8") as file_handle:
            await file_handle.write(payload)
        await aiofiles.os.replace(temp_path, self._catalog_path)
