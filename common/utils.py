"""
utils.py - Common Utility Functions
"""

import base64
import binascii
import os
import logging

from common.errors import InvalidArgument

logger = logging.getLogger(__name__)


def b64encode_template(data: bytes) -> str:
    return base64.b64encode(data).decode()


def b64decode_template(text: str) -> bytes:
    """Decode a base64 template from a request body; empty or bad input is rejected."""
    if not text:
        raise InvalidArgument("template required")
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidArgument(f"template is not valid base64: {e}")


def mask_sensitive(data: dict, keys=("template", "encrypted_template", "key")) -> dict:
    """
    Return a copy of *data* with sensitive fields replaced by a placeholder.
    Useful for safe logging.
    """
    masked = {}
    for k, v in data.items():
        if k in keys:
            masked[k] = f"<{k}: {len(str(v))} chars>"
        elif isinstance(v, dict):
            masked[k] = mask_sensitive(v, keys)
        else:
            masked[k] = v
    return masked


def ensure_dir(path: str):
    if path:
        os.makedirs(path, exist_ok=True)
