from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, cast

import redis

MAILBOX_PREFIX = "bcui:mailbox:"


@dataclass(frozen=True, slots=True)
class Mailbox:
    player_id: str

    @property
    def key(self) -> str:
        return f"{MAILBOX_PREFIX}{self.player_id}"


def publish_to_mailbox(*, r: redis.Redis, mailbox: Mailbox, fields: Mapping[str, str]) -> str:
    """Append an entry to a player's mailbox stream."""

    # redis-py stubs expect field/value unions; we only use string fields/values.
    stream_id = r.xadd(mailbox.key, {str(k): str(v) for k, v in fields.items()})
    return cast(str, stream_id)


def dialog_shown_fields(*, sequence: int, title: str, labels: list[str], buttons: list[str]) -> dict[str, str]:
    return {
        "type": "dialog_shown",
        "sequence": str(sequence),
        "title": title,
        "labels": json.dumps(labels),
        "buttons": json.dumps(buttons),
    }


def read_mailbox(*, r: redis.Redis, mailbox: Mailbox, count: int = 20, start: str = "-", end: str = "+") -> list[dict[str, Any]]:
    entries = r.xrange(mailbox.key, min=start, max=end, count=count)
    return [{"id": mid, "fields": fields} for mid, fields in entries]
