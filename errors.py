#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Request-level errors raised by the ingestion path.

Routes catch DeathLogError and answer with {"ok": false, "error": <error_code>}.
"""


class DeathLogError(Exception):
    status_code = 500
    error_code = "server_error"

    def __init__(self, message: str = "", error_code: str = "") -> None:
        super().__init__(message or self.error_code)
        if error_code:
            self.error_code = error_code


class InvalidDeathPayload(DeathLogError):
    status_code = 400
    error_code = "bad_json"


class UnsupportedImageType(DeathLogError):
    status_code = 415
    error_code = "unsupported_media_type"
