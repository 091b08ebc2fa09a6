"""Append-only mutation journal for a Classiflyer root."""

import json
import uuid
from collections import deque
from datetime import datetime, timezone
from pathlib import Path

from rich.console import Console

from .models.ledger import EventType, LedgerEvent

console = Console()


class LedgerWriter:
    """Appends one JSON line per successful store mutation.

    The file is opened in append mode for every event and is never
    truncated. All events written by one writer share its ``run_id``.
    """

    def __init__(self, ledger_path: Path, run_id: str | None = None):
        self.ledger_path = ledger_path
        self.run_id = run_id or str(uuid.uuid4())

    def append_event(
        self,
        event_type: EventType,
        payload: dict,
        entity_id: str | None = None,
    ) -> LedgerEvent:
        """Write an event and return it.

        Args:
            event_type: Kind of mutation that completed
            payload: Event-specific data
            entity_id: Binder, folder or group key the event is about
        """
        self.ledger_path.parent.mkdir(parents=True, exist_ok=True)

        event = LedgerEvent(
            event_id=str(uuid.uuid4()),
            run_id=self.run_id,
            ts=datetime.now(timezone.utc),
            event_type=event_type,
            entity_id=entity_id,
            payload=payload,
        )
        line = json.dumps(event.model_dump(mode="json"), ensure_ascii=False)
        with open(self.ledger_path, "a", encoding="utf-8") as f:
            f.write(line + "\n")
        return event


def read_ledger_tail(
    ledger_path: Path, n: int = 20, event_type: str | None = None
) -> list[LedgerEvent]:
    """Read the last N events from the journal, oldest first.

    Malformed lines are skipped with a warning. With ``event_type`` only
    events of that type are counted.
    """
    if not ledger_path.exists():
        return []

    events: deque[LedgerEvent] = deque(maxlen=max(n, 0))
    malformed_count = 0

    with open(ledger_path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                event = LedgerEvent.model_validate_json(line)
            except ValueError as e:
                malformed_count += 1
                console.print(f"[yellow]Warning: Skipping malformed line: {e}[/yellow]")
                continue
            if event_type is None or event.event_type == event_type:
                events.append(event)

    if malformed_count > 0:
        console.print(f"[yellow]Skipped {malformed_count} malformed line(s)[/yellow]")

    return list(events)
