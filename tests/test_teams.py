import pytest

from mentor_queue.errors import NotAuthorized, TeamNotFound
from mentor_queue.models import Actor, Role, Team
from mentor_queue.teams import InMemoryTeamDirectory, can_manage, require_manager, require_team

WEB = Team("web", "mentor-ana")


def test_admin_manages_every_team():
    assert can_manage(Actor("root", Role.ADMIN), WEB)
    assert can_manage(Actor("root", Role.ADMIN), None)


def test_mentor_manages_only_own_team():
    assert can_manage(Actor("mentor-ana", Role.MENTOR), WEB)
    assert not can_manage(Actor("mentor-bo", Role.MENTOR), WEB)
    assert not can_manage(Actor("mentor-ana", Role.MENTOR), None)


def test_student_manages_nothing():
    # Even a student whose id happens to match the mentor id.
    assert not can_manage(Actor("mentor-ana", Role.STUDENT), WEB)
    with pytest.raises(NotAuthorized):
        require_manager(Actor("alice"), WEB)


def test_directory_lookup():
    directory = InMemoryTeamDirectory()
    with pytest.raises(TeamNotFound):
        require_team(directory, "web")
    directory.register(WEB)
    assert require_team(directory, "web") == WEB
