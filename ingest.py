#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Turn one upload (death JSON + optional screenshot) into a stored record.
"""

import json
import logging
import secrets
import time
from typing import Any, Dict, Optional, Tuple

from death_record import UNKNOWN, is_timestamp
from death_store import DeathStore
from errors import InvalidDeathPayload
from image_intake import store_image

logger = logging.getLogger(__name__)


def new_record_id() -> str:
    return secrets.token_urlsafe(16)


def parse_payload(raw: Optional[str]) -> Dict[str, Any]:
    if raw is None or not str(raw).strip():
        raise InvalidDeathPayload("death payload missing", error_code="missing_death_json")
    try:
        payload = json.loads(raw)
    except ValueError as e:
        raise InvalidDeathPayload(f"death payload is not valid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise InvalidDeathPayload("death payload must be a JSON object")
    for k in ("player", "realm"):
        # "@" separates player and realm in profile slugs
        if isinstance(payload.get(k), str) and "@" in payload[k]:
            raise InvalidDeathPayload(f"{k} must not contain '@'", error_code="bad_name")
    return payload


def _text_or_default(v: Any) -> Any:
    if v is None or (isinstance(v, str) and not v.strip()):
        return UNKNOWN
    return v


def build_record(payload: Dict[str, Any], screenshot: Optional[str], now: Optional[int] = None) -> Dict[str, Any]:
    """
    Server fields (id, receivedAt, screenshot) always override whatever the client sent.
    """
    now = int(time.time()) if now is None else now
    at = payload.get("at")
    # id/receivedAt lead the stored object
    record: Dict[str, Any] = {"id": None, "receivedAt": now}
    record.update(payload)
    record.update(
        {
            "id": new_record_id(),
            "receivedAt": now,
            "at": int(at) if is_timestamp(at) and int(at) > 0 else now,
            "player": _text_or_default(payload.get("player")),
            "realm": _text_or_default(payload.get("realm")),
            "screenshot": screenshot,
        }
    )
    return record


def ingest(
    store: DeathStore,
    upload_dir: str,
    raw_payload: Optional[str],
    image: Optional[Tuple[bytes, Optional[str], Optional[str]]] = None,
) -> Dict[str, Any]:
    """
    image is (bytes, filename, mimetype) or None.

    Payload problems and rejected images raise before anything touches disk.
    A stored screenshot is left in place if the record append fails afterwards.
    """
    payload = parse_payload(raw_payload)

    screenshot = None
    if image is not None:
        data, filename, mimetype = image
        screenshot = store_image(data, filename, mimetype, upload_dir)

    record = build_record(payload, screenshot)
    store.append(record)
    logger.info("Stored death %s for %s@%s", record["id"], record["player"], record["realm"])
    return record
