"""MIME multi-part user data archives.

User data for the script and declarative families is delivered as a
``multipart/mixed`` archive. User-supplied data may already be an archive,
may declare ``Content-Type`` before ``MIME-Version``, or may be a bare
document; all three are parsed into parts and re-rendered as one archive
holding the user's parts first and the generated parts after them.

Merging is not deduplicating: merging an already merged archive with the
same generated parts appends them again.
"""

from __future__ import annotations

import base64
import binascii
import email
import email.policy
import re
from collections.abc import Sequence
from dataclasses import dataclass
from email.message import Message
from typing import Final

import yaml

from nodeforge.constants import (
    CLOUD_CONFIG_CONTENT_TYPE,
    MIME_BOUNDARY,
    NODE_CONFIG_API_VERSION,
    NODE_CONFIG_CONTENT_TYPE,
    SHELL_CONTENT_TYPE,
)
from nodeforge.exceptions import UserDataError

_HEADER_LINE: Final = re.compile(r"^(mime-version|content-type)\s*:", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class Part:
    """One typed section of an archive.

    Parsed parts keep every header of the original section, in order, and
    the payload exactly as it was transferred, so they render back
    unchanged. Generated parts only carry a content type.
    """

    content_type: str
    content: str
    headers: tuple[tuple[str, str], ...] = ()

    @property
    def transfer_encoding(self) -> str:
        for name, value in self.headers:
            if name.lower() == "content-transfer-encoding":
                return value.strip().lower()
        return ""

    def header_lines(self) -> list[str]:
        if not self.headers:
            return [f"Content-Type: {self.content_type}"]
        return [f"{name}: {value}" for name, value in self.headers]

    def data(self) -> bytes:
        """Payload bytes with a base64 transfer encoding removed."""
        if self.transfer_encoding == "base64":
            return base64.b64decode(self.content)
        return self.content.encode()


# =============================================================================
# Parsing
# =============================================================================


def is_mime(user_data: str) -> bool:
    """Whether user data starts with MIME headers, in either order."""
    first = user_data.lstrip().split("\n", 1)[0]
    return bool(_HEADER_LINE.match(first))


def infer_content_type(content: str) -> str:
    """Guess the content type of a bare document.

    Shell scripts and cloud-config are recognized by their first line; a
    YAML mapping declaring the node configuration API is a node config.
    Anything else is treated as a shell script.
    """
    head = content.lstrip()
    if head.startswith("#cloud-config"):
        return CLOUD_CONFIG_CONTENT_TYPE
    if head.startswith("#!"):
        return SHELL_CONTENT_TYPE
    try:
        document = yaml.safe_load(content)
    except yaml.YAMLError:
        return SHELL_CONTENT_TYPE
    if isinstance(document, dict) and str(document.get("apiVersion", "")).startswith(
        NODE_CONFIG_API_VERSION.split("/")[0]
    ):
        return NODE_CONFIG_CONTENT_TYPE
    return SHELL_CONTENT_TYPE


def _part(message: Message, family: str) -> Part:
    raw = message.get_payload()
    if not isinstance(raw, str):
        raise UserDataError(family, "nested multi-part archives are not supported")
    headers = tuple((name, value) for name, value in message.items() if name.lower() != "mime-version")
    part = Part(_content_type(message), raw, headers)
    if part.transfer_encoding == "base64":
        try:
            base64.b64decode(raw)
        except binascii.Error as e:
            raise UserDataError(family, f"invalid base64 part: {e}") from e
    return part


def _content_type(message: Message) -> str:
    return str(message.get("Content-Type", SHELL_CONTENT_TYPE)).strip()


def parse(user_data: str, family: str = "user data") -> list[Part]:
    """Split user data into parts.

    Raises:
        UserDataError: If an archive is declared but cannot be parsed.
    """
    if not user_data.strip():
        return []

    if not is_mime(user_data):
        return [Part(infer_content_type(user_data), user_data)]

    message = email.message_from_string(user_data.lstrip(), policy=email.policy.compat32)
    if not message.is_multipart():
        if message.get_content_maintype() == "multipart":
            raise UserDataError(family, "multi-part archive has no parts")
        return [_part(message, family)]

    parts = message.get_payload()
    if not isinstance(parts, list) or not parts:
        raise UserDataError(family, "multi-part archive has no parts")
    if message.defects:
        raise UserDataError(family, f"malformed archive: {message.defects[0]!r}")

    return [_part(p, family) for p in parts]


# =============================================================================
# Rendering
# =============================================================================


def render(parts: Sequence[Part], boundary: str = MIME_BOUNDARY) -> str:
    """Render parts as a ``multipart/mixed`` archive."""
    lines = [
        "MIME-Version: 1.0",
        f'Content-Type: multipart/mixed; boundary="{boundary}"',
        "",
    ]
    for part in parts:
        lines += [f"--{boundary}", *part.header_lines(), "", part.content]
    lines.append(f"--{boundary}--")
    return "\n".join(lines) + "\n"


def merge(user_data: str | None, generated: Sequence[Part], family: str = "user data") -> str:
    """Merge user data with generated parts into one archive.

    User parts come first, unmodified and in their original order,
    followed by the generated parts.
    """
    user_parts = parse(user_data, family) if user_data else []
    return render([*user_parts, *generated])
