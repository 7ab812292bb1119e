from __future__ import annotations

# Ticket allocation.
#
# Tickets are the externally visible arrival order ("#7"). The counter on the
# queue always holds the last ticket handed out, so:
#   ticket = next_ticket_number + 1
# Numbers are never recycled: a rejected or cancelled join still consumed one.

from .models import QueueSnapshot


def allocate_ticket(snapshot: QueueSnapshot) -> tuple[int, int]:
    """Issue the next ticket for a queue.

    Args:
        snapshot: the queue state the join is applied to.

    Returns:
        `(ticket_number, new_counter)`. Callers store `new_counter` back into
        `next_ticket_number` in the same snapshot that receives the new entry.
    """
    if snapshot.next_ticket_number < 0:
        raise ValueError("next_ticket_number must be >= 0")

    ticket = snapshot.next_ticket_number + 1
    return ticket, ticket
