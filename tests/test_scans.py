"""
Tests for scan visibility and creation rules.
"""

import pytest

from retinascan.assignments import AssignmentRegistry
from retinascan.errors import (
    Forbidden, NotFound, PatientNotFound, ValidationError,
)
from retinascan.models import NewScan
from retinascan.profiles import get_profile
from retinascan.scans import SCAN_NOT_FOUND, ScanAccess


def new_scan(patient_id, severity="mild", **overrides):
    data = dict(
        patient_id=patient_id,
        original_image_url="/api/images/a.jpg",
        heatmap_image_url="/api/images/a.jpg",
        diagnosis="Mild DR",
        severity=severity,
        confidence=90,
        model_version="stub-v1",
        inference_mode="stub",
        inference_time=3,
        preprocessing_method="none",
    )
    data.update(overrides)
    return NewScan(**data)


@pytest.fixture
def world(people, clock):
    registry = AssignmentRegistry(people, clock=clock)
    access = ScanAccess(people, registry, clock=clock)
    who = {pid: get_profile(people, pid) for pid in ["d1", "d2", "dp", "p1", "p2", "a1"]}
    return registry, access, who


# ── Tests: visibility ────────────────────────────────────────────────

def test_example_scenario_visibility_follows_current_assignment(world):
    registry, access, who = world
    registry.assign("p1", "d1")
    scan = access.create_scan(who["d1"], new_scan("p1"))

    assert [s.id for s in access.list_visible_scans(who["p1"])] == [scan.id]
    assert [s.id for s in access.list_visible_scans(who["d1"])] == [scan.id]
    assert access.list_visible_scans(who["d2"]) == []

    registry.assign("p1", "d2")
    assert registry.get_doctor_for("p1").id == "d2"
    assert access.list_visible_scans(who["d1"]) == []
    assert [s.id for s in access.list_visible_scans(who["d2"])] == [scan.id]
    assert [s.id for s in access.list_visible_scans(who["a1"])] == [scan.id]


def test_patient_sees_only_own_scans(world):
    registry, access, who = world
    registry.assign("p1", "d1")
    registry.assign("p2", "d1")
    s1 = access.create_scan(who["d1"], new_scan("p1"))
    s2 = access.create_scan(who["d1"], new_scan("p2"))

    assert [s.id for s in access.list_visible_scans(who["p1"])] == [s1.id]
    assert [s.id for s in access.list_visible_scans(who["p2"])] == [s2.id]
    assert [s.id for s in access.list_visible_scans(who["d1"])] == [s2.id, s1.id]
    assert [s.id for s in access.list_visible_scans(who["a1"])] == [s2.id, s1.id]


def test_doctor_without_patients_sees_nothing(world):
    _, access, who = world
    assert access.list_visible_scans(who["d2"]) == []


def test_pending_doctor_cannot_list_scans(world):
    _, access, who = world
    with pytest.raises(Forbidden, match="pending approval"):
        access.list_visible_scans(who["dp"])


def test_get_visible_scan_not_found_is_uniform(world):
    registry, access, who = world
    registry.assign("p1", "d1")
    scan = access.create_scan(who["d1"], new_scan("p1"))

    with pytest.raises(NotFound) as hidden:
        access.get_visible_scan(who["d2"], scan.id)
    with pytest.raises(NotFound) as missing:
        access.get_visible_scan(who["d2"], 987654)

    assert type(hidden.value) is type(missing.value)
    assert hidden.value.to_dict() == missing.value.to_dict()
    assert hidden.value.message == SCAN_NOT_FOUND


def test_get_visible_scan_allowed(world):
    registry, access, who = world
    registry.assign("p1", "d1")
    scan = access.create_scan(who["d1"], new_scan("p1"))
    for viewer in ["p1", "d1", "a1"]:
        assert access.get_visible_scan(who[viewer], scan.id).id == scan.id
    with pytest.raises(NotFound):
        access.get_visible_scan(who["p2"], scan.id)


def test_recent_scans_respect_scope_and_limit(world):
    registry, access, who = world
    registry.assign("p1", "d1")
    registry.assign("p2", "d2")
    ids = [access.create_scan(who["d1"], new_scan("p1")).id for _ in range(3)]
    access.create_scan(who["d2"], new_scan("p2"))

    assert [s.id for s in access.list_recent_scans(who["p1"], limit=2)] == ids[::-1][:2]
    assert len(access.list_recent_scans(who["a1"], limit=10)) == 4
    assert len(access.list_recent_scans(who["a1"], limit=0)) == 1


def test_patient_scans_for_unassigned_patient_is_not_found(world):
    registry, access, who = world
    registry.assign("p1", "d1")
    access.create_scan(who["d1"], new_scan("p1"))
    assert len(access.list_patient_scans(who["d1"], "p1")) == 1
    assert len(access.list_patient_scans(who["a1"], "p1")) == 1
    with pytest.raises(PatientNotFound):
        access.list_patient_scans(who["d2"], "p1")


def test_image_lookup_follows_visibility(world):
    registry, access, who = world
    registry.assign("p1", "d1")
    access.create_scan(who["d1"], new_scan("p1", original_image_url="/api/images/x.png",
                                           heatmap_image_url="/api/images/x.png"))
    assert access.get_visible_image_scan(who["p1"], "/api/images/x.png").patient_id == "p1"
    with pytest.raises(NotFound):
        access.get_visible_image_scan(who["p2"], "/api/images/x.png")


# ── Tests: creation ──────────────────────────────────────────────────

def test_create_scan_stamps_target_patient_and_timestamp(world):
    registry, access, who = world
    registry.assign("p1", "d1")
    scan = access.create_scan(who["d1"], new_scan("p1", severity="severe",
                                                  metadata={"uploadedBy": "d1"}))
    assert scan.patient_id == "p1"
    assert scan.severity == "severe"
    assert scan.timestamp is not None
    assert scan.metadata == {"uploadedBy": "d1"}


def test_create_scan_ids_are_monotonic(world):
    registry, access, who = world
    registry.assign("p1", "d1")
    first = access.create_scan(who["d1"], new_scan("p1"))
    second = access.create_scan(who["d1"], new_scan("p1"))
    assert second.id > first.id


@pytest.mark.parametrize("creator", ["p1", "a1", "dp"])
def test_only_approved_doctors_create_scans(world, creator):
    registry, access, who = world
    registry.assign("p1", "d1")
    with pytest.raises(Forbidden):
        access.create_scan(who[creator], new_scan("p1"))


def test_create_scan_for_unassigned_patient(world):
    registry, access, who = world
    registry.assign("p1", "d1")
    with pytest.raises(PatientNotFound):
        access.create_scan(who["d2"], new_scan("p1"))


def test_create_scan_for_unknown_patient(world):
    _, access, who = world
    with pytest.raises(PatientNotFound):
        access.create_scan(who["d1"], new_scan("ghost"))


# ── Tests: NewScan validation ────────────────────────────────────────

def test_new_scan_from_camel_case_payload():
    scan = NewScan.from_payload({
        "patientId": "p1",
        "originalImageUrl": "o",
        "heatmapImageUrl": "h",
        "diagnosis": "No DR",
        "severity": "none",
        "confidence": 0,
        "modelVersion": "m",
        "inferenceMode": "i",
        "inferenceTime": 0,
        "preprocessingMethod": "p",
    })
    assert scan.patient_id == "p1"
    assert scan.metadata == {}


@pytest.mark.parametrize("overrides, message", [
    ({"severity": "critical"}, "severity"),
    ({"confidence": 101}, "confidence"),
    ({"confidence": -1}, "confidence"),
    ({"confidence": "90"}, "confidence"),
    ({"inference_time": -5}, "inference_time"),
    ({"diagnosis": "  "}, "diagnosis"),
    ({"patient_id": ""}, "patient_id"),
])
def test_new_scan_rejects_bad_values(overrides, message):
    with pytest.raises(ValidationError, match=message):
        new_scan("p1", **overrides)


def test_new_scan_requires_fields():
    with pytest.raises(ValidationError, match="patientId"):
        NewScan.from_payload({"severity": "mild"})


@pytest.mark.parametrize("scan_id", [0, -3, 2 ** 63, 10 ** 30])
def test_get_visible_scan_out_of_range_id_is_not_found(world, scan_id):
    _, access, who = world
    with pytest.raises(NotFound) as e:
        access.get_visible_scan(who["a1"], scan_id)
    assert e.value.message == SCAN_NOT_FOUND
