"""
Tests for the admin console command dispatcher.
"""

import pytest

from retinascan.approval import ApprovalWorkflow
from retinascan.assignments import AssignmentRegistry
from retinascan.cli import run_command
from retinascan.errors import NotFound
from retinascan.profiles import get_profile


@pytest.fixture
def console(people, clock):
    workflow = ApprovalWorkflow(people, clock=clock)
    registry = AssignmentRegistry(people, clock=clock)

    def run(line):
        return run_command(line, people, workflow, registry)
    return run, registry


def test_pending_lists_doctors(console, capsys):
    run, _ = console
    assert run("pending") is True
    out = capsys.readouterr().out
    assert "dp" in out
    assert "Dr Pending" in out


def test_approve_command(console, people, capsys):
    run, _ = console
    run("approve dp")
    assert "is now approved" in capsys.readouterr().out
    assert get_profile(people, "dp").status == "approved"


def test_approve_unknown_raises_for_the_loop(console):
    run, _ = console
    with pytest.raises(NotFound):
        run("approve p1")


def test_patients_and_doctor_commands(console, capsys):
    run, registry = console
    registry.assign("p1", "d1")
    run("patients d1")
    run("doctor p1")
    run("doctor p2")
    out = capsys.readouterr().out
    assert "Pat One" in out
    assert "Dr One" in out
    assert "(no doctor assigned)" in out


def test_create_admin_command(console, people):
    run, _ = console
    run("create-admin root root@example.com Site Admin")
    assert get_profile(people, "root").name == "Site Admin"


def test_unknown_command_prints_help(console, capsys):
    run, _ = console
    run("frobnicate")
    assert "Commands:" in capsys.readouterr().out


def test_quit(console):
    run, _ = console
    assert run("quit") is False
