"""Tests for command registration, lookup and grouping."""

import pytest

from personabook.channels.commands import CommandGroup, CommandRouter
from personabook.channels.commands.handlers import get_builtin_commands
from personabook.channels.commands.router import command_name


@pytest.fixture
def router():
    router = CommandRouter()
    for handler in get_builtin_commands():
        router.register(handler)
    return router


def test_command_name_strips_mention_and_case():
    assert command_name("Sessions@PersonaBookBot") == "sessions"
    assert command_name("end") == "end"


def test_duplicate_registration_rejected(router):
    [first, *_] = get_builtin_commands()
    with pytest.raises(ValueError, match="registered twice"):
        router.register(first)


def test_lookup_is_case_insensitive(router):
    assert router.get_handler("CANCEL") is router.get_handler("cancel")
    assert router.get_handler("bogus") is None


def test_grouped_order_and_hidden(router):
    sections = router.grouped()

    groups = [group for group, _ in sections]
    assert groups == [
        CommandGroup.BOOKING,
        CommandGroup.SESSION,
        CommandGroup.PREFERENCES,
        CommandGroup.GENERAL,
    ]
    names = [d.name for _, definitions in sections for d in definitions]
    assert "start" not in names
    assert names[-1] == "help"
