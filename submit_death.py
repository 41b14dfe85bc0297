#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
DeathLogger uploader
- Sends one death (JSON file exported by the addon) plus an optional screenshot
  to a running DeathLogger server, the same way the addon's companion uploader does
- Retries on 429/502/503 with backoff

Usage:
  python submit_death.py --death death.json
  python submit_death.py --server http://localhost:3000 --death death.json --screenshot WoWScrnShot.tga

Deps:
  pip install requests
"""

import argparse
import json
import mimetypes
import os
import time
from typing import Any, Dict, Optional

import requests

DEFAULT_SERVER = os.getenv("DEATHLOG_SERVER", "http://localhost:3000")

DEFAULT_USER_AGENT = os.getenv("USER_AGENT", "deathlog-submit/0.1")

HTTP_CONNECT_TIMEOUT = float(os.getenv("HTTP_CONNECT_TIMEOUT", "5"))
HTTP_READ_TIMEOUT = float(os.getenv("HTTP_READ_TIMEOUT", "60"))

RETRY_STATUSES = (429, 502, 503)

# mimetypes doesn't know TGA everywhere
EXTRA_MIME = {".tga": "image/x-tga", ".webp": "image/webp"}


def guess_mimetype(path: str) -> str:
    ext = os.path.splitext(path)[1].lower()
    if ext in EXTRA_MIME:
        return EXTRA_MIME[ext]
    return mimetypes.guess_type(path)[0] or "application/octet-stream"


class UploadError(RuntimeError):
    def __init__(self, status_code: int, body: Any) -> None:
        self.status_code = status_code
        self.body = body
        err = body.get("error") if isinstance(body, dict) else None
        super().__init__(f"upload rejected ({status_code}): {err or body}")


class DeathLogClient:
    def __init__(self, server: str = DEFAULT_SERVER, backoff_s: float = 0.7, max_retries: int = 4,
                 session: Optional[requests.Session] = None) -> None:
        self.server = server.rstrip("/")
        self.backoff_s = backoff_s
        self.max_retries = max_retries
        self.s = session or requests.Session()
        self.s.headers.update({"User-Agent": DEFAULT_USER_AGENT, "Accept": "application/json"})

    def _wait(self, attempt: int) -> None:
        time.sleep(min(8.0, self.backoff_s * (2 ** (attempt - 1)) + 0.2))

    def upload(self, death_json: str, screenshot_path: Optional[str] = None) -> Dict[str, Any]:
        """
        POST /upload. Returns the server's {"ok", "id", "screenshot"} body.
        Raises UploadError on a 4xx/5xx answer, RuntimeError when retries run out.
        """
        url = f"{self.server}/upload"
        last_err: Optional[BaseException] = None

        for attempt in range(1, self.max_retries + 1):
            files = None
            fh = None
            try:
                if screenshot_path:
                    fh = open(screenshot_path, "rb")
                    files = {
                        "screenshot": (os.path.basename(screenshot_path), fh, guess_mimetype(screenshot_path))
                    }
                r = self.s.post(
                    url,
                    data={"death": death_json},
                    files=files,
                    timeout=(HTTP_CONNECT_TIMEOUT, HTTP_READ_TIMEOUT),
                )
            except requests.RequestException as e:
                last_err = e
                self._wait(attempt)
                continue
            finally:
                if fh is not None:
                    fh.close()

            if r.status_code in RETRY_STATUSES:
                last_err = UploadError(r.status_code, _body(r))
                self._wait(attempt)
                continue
            if r.status_code >= 400:
                raise UploadError(r.status_code, _body(r))
            return r.json()

        raise RuntimeError(f"upload failed after retries: {last_err}")


def _body(r: requests.Response) -> Any:
    try:
        return r.json()
    except ValueError:
        return r.text


def main(argv: Optional[list] = None) -> int:
    ap = argparse.ArgumentParser(description="Upload a character death to a DeathLogger server")
    ap.add_argument("--server", default=DEFAULT_SERVER, help="Server base URL")
    ap.add_argument("--death", required=True, help="Path to the death JSON file")
    ap.add_argument("--screenshot", default=None, help="Optional screenshot (jpg/png/webp/tga)")
    ap.add_argument("--retries", type=int, default=4, help="Attempts on transient errors")
    args = ap.parse_args(argv)

    with open(args.death, "r", encoding="utf-8") as f:
        death_json = f.read()
    try:
        json.loads(death_json)
    except ValueError as e:
        print(f"[ERROR] {args.death} is not valid JSON: {e}")
        return 1

    client = DeathLogClient(server=args.server, max_retries=args.retries)
    try:
        res = client.upload(death_json, screenshot_path=args.screenshot)
    except (UploadError, RuntimeError) as e:
        print(f"[ERROR] {e}")
        return 1

    print(f"[DONE] id={res.get('id')} screenshot={res.get('screenshot')}")
    print(f"       {args.server.rstrip('/')}/death/{res.get('id')}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
