"""
Tests for the doctor approval workflow.
"""

from datetime import datetime

import pytest

from retinascan.approval import ApprovalWorkflow
from retinascan.errors import InvalidTransition, NotFound, ValidationError
from retinascan.profiles import get_profile

from conftest import add_profile


@pytest.fixture
def workflow(engine, clock):
    add_profile(engine, "late", "doctor", "pending", created_at=datetime(2024, 3, 1))
    add_profile(engine, "early", "doctor", "pending", created_at=datetime(2024, 1, 1))
    add_profile(engine, "mid", "doctor", "pending", created_at=datetime(2024, 2, 1))
    add_profile(engine, "ok", "doctor", "approved")
    add_profile(engine, "no", "doctor", "rejected")
    add_profile(engine, "pat", "patient")
    add_profile(engine, "adm", "admin")
    return ApprovalWorkflow(engine, clock=clock)


def test_list_pending_oldest_first(workflow):
    assert [d.id for d in workflow.list_pending()] == ["early", "mid", "late"]


def test_approve_moves_doctor_out_of_queue(workflow, engine):
    profile = workflow.approve("mid")
    assert profile.status == "approved"
    assert get_profile(engine, "mid").status == "approved"
    assert [d.id for d in workflow.list_pending()] == ["early", "late"]


def test_reject(workflow):
    assert workflow.reject("early").status == "rejected"


def test_status_change_stamps_updated_at(workflow, engine, clock):
    workflow.approve("late")
    assert get_profile(engine, "late").updated_at == clock.now


@pytest.mark.parametrize("target", ["pat", "adm", "ghost"])
def test_non_doctor_targets_fail_closed(workflow, engine, target):
    with pytest.raises(NotFound):
        workflow.set_status(target, "approved")
    if target == "pat":
        assert get_profile(engine, "pat").status == "approved"
        assert get_profile(engine, "pat").role == "patient"


@pytest.mark.parametrize("status", ["pending", "admin", ""])
def test_only_decisions_are_accepted(workflow, status):
    with pytest.raises(ValidationError):
        workflow.set_status("early", status)


def test_approved_cannot_become_rejected(workflow, engine):
    with pytest.raises(InvalidTransition):
        workflow.reject("ok")
    assert get_profile(engine, "ok").status == "approved"


def test_rejected_cannot_become_approved(workflow, engine):
    with pytest.raises(InvalidTransition):
        workflow.approve("no")
    assert get_profile(engine, "no").status == "rejected"


def test_repeating_a_decision_is_idempotent(workflow):
    workflow.approve("early")
    assert workflow.approve("early").status == "approved"
    assert workflow.reject("no").status == "rejected"
