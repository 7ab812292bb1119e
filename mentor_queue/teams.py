from __future__ import annotations

# Team directory and team-scoped authorization.
#
# Managing teams is someone else's job; the queue core only asks "who mentors
# this team?" to decide whether a caller may run mentor operations.

import threading
from typing import Protocol

from .errors import NotAuthorized, TeamNotFound
from .models import Actor, Role, Team


class TeamDirectory(Protocol):
    def get_team(self, team_ref: str) -> Team | None: ...


class InMemoryTeamDirectory:
    def __init__(self, teams: list[Team] | None = None) -> None:
        self._lock = threading.Lock()
        self._teams: dict[str, Team] = {t.team_ref: t for t in teams or []}

    def register(self, team: Team) -> None:
        """Create/overwrite a team."""
        with self._lock:
            self._teams[team.team_ref] = team

    def get_team(self, team_ref: str) -> Team | None:
        with self._lock:
            return self._teams.get(team_ref)


def require_team(directory: TeamDirectory, team_ref: str) -> Team:
    team = directory.get_team(team_ref)
    if team is None:
        raise TeamNotFound()
    return team


def can_manage(actor: Actor, team: Team | None) -> bool:
    """Admins manage every team; mentors only the team they mentor."""
    if actor.role is Role.ADMIN:
        return True
    if actor.role is Role.MENTOR and team is not None:
        return team.mentor_ref == actor.user_id
    return False


def require_manager(actor: Actor, team: Team | None) -> None:
    if not can_manage(actor, team):
        raise NotAuthorized("Not authorized to manage this queue")
