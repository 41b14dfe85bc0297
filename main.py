#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import logging
import os
import re
import time
from typing import Any, Dict, List, Optional, Tuple

from flask import Flask, Response, g, jsonify, request, send_file
from werkzeug.exceptions import RequestEntityTooLarge

from death_record import DeathRecord, build_profile, is_timestamp, newest_first
from death_store import DeathStore
from errors import DeathLogError
from ingest import ingest
from views import render_detail, render_home, render_not_found, render_profile

logger = logging.getLogger("deathlog")

# ------------------------------------------------------------
# 0) CONFIG (ENV overridable)
# ------------------------------------------------------------

APP_DIR = os.path.dirname(os.path.abspath(__file__))

PORT = int(os.getenv("PORT", "3000"))
DATA_DIR = os.path.abspath(os.getenv("DATA_DIR", "data"))
UPLOAD_DIR = os.path.abspath(os.getenv("UPLOAD_DIR", "uploads"))
PUBLIC_DIR = os.path.abspath(os.getenv("PUBLIC_DIR", os.path.join(APP_DIR, "public")))

MAX_JSON_BYTES = int(os.getenv("MAX_JSON_BYTES", str(2 * 1024 * 1024)))
MAX_FILE_SIZE = int(os.getenv("MAX_FILE_SIZE", str(50 * 1024 * 1024)))

HOME_PAGE_LIMIT = int(os.getenv("HOME_PAGE_LIMIT", "100"))
# Uploaded screenshots never change once written
MEDIA_MAX_AGE_SECONDS = int(os.getenv("MEDIA_MAX_AGE_SECONDS", str(7 * 24 * 3600)))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# ------------------------------------------------------------
# 1) VALIDATION / SECURITY
# ------------------------------------------------------------

ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")

CONTENT_SECURITY_POLICY = "; ".join(
    [
        "default-src 'self'",
        "base-uri 'self'",
        "font-src 'self' https: data:",
        "form-action 'self'",
        "frame-ancestors 'self'",
        "img-src 'self' data:",
        "object-src 'none'",
        "script-src 'self'",
        "script-src-attr 'none'",
        "style-src 'self' 'unsafe-inline'",
    ]
)

SECURITY_HEADERS = {
    "Content-Security-Policy": CONTENT_SECURITY_POLICY,
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Referrer-Policy": "no-referrer",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
}


def _safe_realpath(base_dir: str, rel_path: str) -> Optional[str]:
    """
    Prevent path traversal: only allow paths within base_dir.
    """
    base_real = os.path.realpath(base_dir)
    candidate = os.path.realpath(os.path.join(base_real, rel_path))
    if not candidate.startswith(base_real + os.sep) and candidate != base_real:
        return None
    return candidate


def configure_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ------------------------------------------------------------
# 2) FLASK APP
# ------------------------------------------------------------

app = Flask(__name__)
app.config.update(
    DATA_DIR=DATA_DIR,
    UPLOAD_DIR=UPLOAD_DIR,
    PUBLIC_DIR=PUBLIC_DIR,
    HOME_PAGE_LIMIT=HOME_PAGE_LIMIT,
    MEDIA_MAX_AGE_SECONDS=MEDIA_MAX_AGE_SECONDS,
    MAX_CONTENT_LENGTH=MAX_FILE_SIZE + MAX_JSON_BYTES,
    MAX_FORM_MEMORY_SIZE=MAX_JSON_BYTES,
)
# keep records in the key order they were stored
app.json.sort_keys = False


def _store() -> DeathStore:
    return DeathStore.in_dir(app.config["DATA_DIR"])


def _records() -> List[DeathRecord]:
    return [DeathRecord.from_dict(r) for r in _store().load()]


def _raw_newest_first(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(rows, key=lambda r: r.get("at") if is_timestamp(r.get("at")) else 0, reverse=True)


def _not_found_json():
    return jsonify({"ok": False, "error": "not_found"}), 404


@app.before_request
def _start_timer() -> None:
    g.started = time.perf_counter()


@app.after_request
def _finish(resp: Response) -> Response:
    for k, v in SECURITY_HEADERS.items():
        resp.headers.setdefault(k, v)
    # served over plain HTTP as well; never pin clients to HTTPS
    resp.headers.pop("Strict-Transport-Security", None)

    started = g.get("started")
    took_ms = (time.perf_counter() - started) * 1000 if started is not None else 0.0
    logger.info(
        "%s %s %s %.3f ms - %s",
        request.method,
        request.full_path.rstrip("?"),
        resp.status_code,
        took_ms,
        resp.content_length if resp.content_length is not None else "-",
    )
    return resp


@app.errorhandler(RequestEntityTooLarge)
def _too_large(_e):
    return jsonify({"ok": False, "error": "payload_too_large"}), 413


# ------------------------------------------------------------
# 3) HTML PAGES
# ------------------------------------------------------------

@app.get("/")
def index() -> str:
    records = newest_first(_records())
    limit = app.config["HOME_PAGE_LIMIT"]
    return render_home(records[:limit], total=len(records))


@app.get("/death/<death_id>")
def death_detail(death_id: str):
    row = _store().get(death_id) if ID_RE.match(death_id or "") else None
    if row is None:
        return render_not_found("No death with that id."), 404
    return render_detail(DeathRecord.from_dict(row))


@app.get("/player/<path:slug>")
def player_profile(slug: str):
    profile = build_profile(_records(), slug)
    if profile is None:
        return render_not_found("No deaths recorded for that character."), 404
    return render_profile(profile)


# ------------------------------------------------------------
# 4) JSON API
# ------------------------------------------------------------

@app.get("/api/deaths")
def api_deaths():
    return jsonify(_raw_newest_first(_store().load()))


@app.get("/api/death/<death_id>")
def api_death(death_id: str):
    if not ID_RE.match(death_id or ""):
        return _not_found_json()
    row = _store().get(death_id)
    if row is None:
        return _not_found_json()
    return jsonify(row)


@app.get("/health")
def health():
    return jsonify({"ok": True})


# ------------------------------------------------------------
# 5) UPLOAD
# ------------------------------------------------------------

def _death_payload_from_request() -> Optional[str]:
    raw = request.form.get("death")
    if raw is not None:
        return raw

    # some uploaders attach the JSON as a file part
    part = request.files.get("death")
    if part is not None:
        return part.read().decode("utf-8", errors="replace")

    if request.mimetype in ("text/plain", "application/json"):
        return request.get_data(as_text=True)
    return None


def _image_from_request() -> Optional[Tuple[bytes, Optional[str], Optional[str]]]:
    f = request.files.get("screenshot")
    if f is None:
        return None
    data = f.read()
    if not f.filename and not data:
        return None
    return data, f.filename, f.mimetype


@app.post("/upload")
def upload():
    try:
        raw = _death_payload_from_request()
        image = _image_from_request()
        record = ingest(_store(), app.config["UPLOAD_DIR"], raw, image)
    except RequestEntityTooLarge:
        raise
    except DeathLogError as e:
        logger.info("Rejected upload: %s", e)
        return jsonify({"ok": False, "error": e.error_code}), e.status_code
    except Exception:
        logger.exception("upload error")
        return jsonify({"ok": False, "error": "server_error"}), 500

    return jsonify({"ok": True, "id": record["id"], "screenshot": record["screenshot"]})


# ------------------------------------------------------------
# 6) STATIC FILES
# ------------------------------------------------------------

def _send_static(base_dir: str, relpath: str):
    relpath = (relpath or "").lstrip("/")
    safe_abs = _safe_realpath(base_dir, relpath)
    if not safe_abs or not os.path.isfile(safe_abs):
        return _not_found_json()

    resp: Response = send_file(safe_abs)
    resp.headers["Cache-Control"] = f"public, max-age={app.config['MEDIA_MAX_AGE_SECONDS']}, immutable"
    return resp


@app.get("/uploads/<path:relpath>")
def uploaded_file(relpath: str):
    return _send_static(app.config["UPLOAD_DIR"], relpath)


@app.get("/public/<path:relpath>")
def public_asset(relpath: str):
    return _send_static(app.config["PUBLIC_DIR"], relpath)


def run() -> None:
    configure_logging()
    _store().ensure()
    os.makedirs(app.config["UPLOAD_DIR"], exist_ok=True)
    logger.info("DeathLogger server running at http://localhost:%s", PORT)
    app.run(host="0.0.0.0", port=PORT, debug=False)


if __name__ == "__main__":
    run()
