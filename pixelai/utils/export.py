"""
EXPORT UTILITY
==============

Renders a transcript as a portable markdown document and reads it back.

FORMAT:
  # PixelAI Chat Export

  **You**: Hello

  **Assistant**: Hi there

One blank line separates blocks. A user attachment is noted on the line
after its message as `_[attachment: name (123 bytes, mime/type)]_`. There are
no timestamps, so exporting the same transcript twice gives identical text.

ESCAPING:
  A content line (after the first) that would read as a block start or an
  attachment note gets one extra leading backslash, e.g. "\\**You**: hi".
  Reading the document back removes exactly one, so any text survives the
  round trip. Markdown renders the escaped line as the literal text.
"""

import re
from typing import Iterable, List

from pixelai.models import Attachment, Message, Role

ROLE_LABELS = {Role.USER: "You", Role.ASSISTANT: "Assistant"}

_BLOCK_START = re.compile(r"^\*\*(You|Assistant)\*\*: ?(.*)$")
_ATTACHMENT_SUFFIX = re.compile(r"\n_\[attachment: (.+) \((\d+) bytes, ([^)]*)\)\]_$")
# Lines that need a backslash; already-escaped ones too, so escaping stays reversible
_NEEDS_ESCAPE = re.compile(r"^\\*(\*\*(You|Assistant)\*\*:|_\[attachment: )")


def export_header(app_name: str) -> str:
    return f"# {app_name} Chat Export"


def _escape_content(content: str) -> str:
    first, *rest = content.split("\n")
    rest = ["\\" + line if _NEEDS_ESCAPE.match(line) else line for line in rest]
    return "\n".join([first] + rest)


def _unescape_content(content: str) -> str:
    first, *rest = content.split("\n")
    rest = [line[1:] if line.startswith("\\") and _NEEDS_ESCAPE.match(line) else line for line in rest]
    return "\n".join([first] + rest)


def export_markdown(messages: Iterable[Message], app_name: str) -> str:
    """Render messages in order. Pure: no I/O, no clock."""
    blocks = [export_header(app_name)]
    for message in messages:
        block = f"**{ROLE_LABELS[message.role]}**: {_escape_content(message.content)}"
        if message.attachment is not None:
            a = message.attachment
            block += f"\n_[attachment: {a.name} ({a.size_bytes} bytes, {a.mime_type})]_"
        blocks.append(block)
    return "\n\n".join(blocks) + "\n"


def parse_markdown_export(text: str) -> List[Message]:
    """
    Read a document produced by export_markdown back into messages.

    Content spanning several lines is kept as-is, escaped lines included.
    """
    messages: List[Message] = []
    role = None
    lines: List[str] = []

    def flush():
        if role is None:
            return
        content = "\n".join(lines)
        # Drop the newline that belongs to the blank separator line
        if content.endswith("\n"):
            content = content[:-1]
        attachment = None
        match = _ATTACHMENT_SUFFIX.search(content)
        if match:
            attachment = Attachment(
                name=match.group(1),
                size_bytes=int(match.group(2)),
                mime_type=match.group(3),
            )
            content = content[: match.start()]
        messages.append(Message(role=role, content=_unescape_content(content), attachment=attachment))

    for line in text.split("\n"):
        start = _BLOCK_START.match(line)
        if start:
            flush()
            role = Role.USER if start.group(1) == "You" else Role.ASSISTANT
            lines = [start.group(2)]
        elif role is not None:
            lines.append(line)
    flush()
    return messages
