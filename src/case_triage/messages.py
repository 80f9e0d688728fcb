from typing import Tuple

from case_triage.schema import MessageKind

DEFAULT_KIND_BY_ROLE: dict[str, MessageKind] = {
    "patient": "patient",
    "worker": "note",
    "doctor": "note",
    "admin": "note",
    "system": "system",
}

# Prefixes older clients wrote into message content in place of a kind,
# with the roles allowed to produce them.
LEGACY_PREFIXES: Tuple[Tuple[str, MessageKind, Tuple[str, ...]], ...] = (
    ("[WORKER NOTE]", "note", ("worker", "doctor", "admin")),
    ("[DOCTOR ADVICE]", "advice", ("doctor", "admin")),
)


def default_kind(author_role: str) -> MessageKind:
    return DEFAULT_KIND_BY_ROLE[author_role]


def parse_legacy_message(content: str, author_role: str) -> Tuple[MessageKind, str]:
    """Split a prefixed legacy message into (kind, content without prefix)."""
    for prefix, kind, roles in LEGACY_PREFIXES:
        if content.startswith(prefix) and author_role in roles:
            return kind, content[len(prefix):].strip()
    return default_kind(author_role), content
