#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Flat-file store: one JSON array of death records on disk.

No locking. append() is read-modify-write, so two concurrent uploads may race and
the last writer wins. save() goes through a temp file + rename, which keeps the
file itself all-or-nothing.
"""

import json
import logging
import os
import tempfile
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

DB_FILENAME = "deaths.json"


class DeathStore:
    def __init__(self, path: str) -> None:
        self.path = path

    @classmethod
    def in_dir(cls, data_dir: str) -> "DeathStore":
        return cls(os.path.join(data_dir, DB_FILENAME))

    def ensure(self) -> None:
        parent = os.path.dirname(self.path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        if not os.path.exists(self.path):
            self.save([])

    def load(self) -> List[Dict[str, Any]]:
        """
        Full store contents. A missing or unparseable file reads as an empty store.
        """
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except FileNotFoundError:
            return []
        except (OSError, ValueError) as e:
            logger.warning("Could not read %s, treating store as empty: %s", self.path, e)
            return []

        if not isinstance(raw, list):
            logger.warning("%s does not hold a JSON array, treating store as empty", self.path)
            return []
        return [r for r in raw if isinstance(r, dict)]

    def save(self, records: List[Dict[str, Any]]) -> None:
        parent = os.path.dirname(self.path) or "."
        os.makedirs(parent, exist_ok=True)
        # one temp file per writer; concurrent saves must not share it
        fd, tmp = tempfile.mkstemp(prefix=DB_FILENAME + ".", suffix=".tmp", dir=parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(records, f, ensure_ascii=False, indent=2)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise

    def append(self, record: Dict[str, Any]) -> None:
        rows = self.load()
        rows.append(record)
        self.save(rows)

    def get(self, record_id: str) -> Optional[Dict[str, Any]]:
        for r in self.load():
            if r.get("id") == record_id:
                return r
        return None
