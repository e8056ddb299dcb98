"""Tests for patient repository functionality."""

from datetime import date, timedelta
from unittest.mock import patch

import pytest

from clinic_booking.clinic_data.database import PatientRepository
from clinic_booking.clinic_data.database.enums import BloodType, PartyStatus
from clinic_booking.clinic_data.database.errors import ReferentialConflictError, ValidationError

from conftest import make_patient


@pytest.fixture
def repo():
    """Get a repository instance."""
    return PatientRepository()


@pytest.fixture
def test_patient(repo):
    """Create a test patient for tests that need one."""
    return repo.create(make_patient("PT900", "Test", "Fixture", phone="555-FIXTURE"), changed_by="test")


class TestFindExistingPatient:
    """Tests for find_existing_patient method."""

    def test_find_by_phone(self, repo, test_patient):
        patient = repo.find_existing_patient(phone="555-FIXTURE")
        assert patient is not None
        assert patient.first_name == "Test"

    def test_find_by_email(self, repo, test_patient):
        patient = repo.find_existing_patient(email="Test.Fixture@Email.com")
        assert patient is not None
        assert patient.last_name == "Fixture"

    def test_find_by_name_and_dob(self, repo, test_patient):
        patient = repo.find_existing_patient(
            first_name="test",
            last_name="fixture",
            date_of_birth="1985-03-15"
        )
        assert patient is not None
        assert patient.phone == "555-FIXTURE"

    def test_no_match(self, repo, test_patient):
        assert repo.find_existing_patient(phone="555-0000") is None

    def test_find_by_name(self, repo, test_patient):
        assert [p.id for p in repo.find_patients_by_name("Test", "Fixture")] == [test_patient.id]


class TestCreatePatient:
    """Tests for patient registration."""

    def test_create_sets_defaults(self, test_patient):
        assert test_patient.status == PartyStatus.ACTIVE
        assert test_patient.registration_date == date.today()
        assert test_patient.email == "test.fixture@email.com"

    def test_lookup_by_number(self, repo, test_patient):
        assert repo.get_by_number("PT900").id == test_patient.id

    def test_duplicate_number(self, repo, test_patient):
        with pytest.raises(ValidationError) as excinfo:
            repo.create(make_patient("PT900", "Other", "Person"))
        assert excinfo.value.field == "patient_number"

    def test_dob_must_be_in_past(self, repo):
        with pytest.raises(ValidationError) as excinfo:
            repo.create(make_patient(date_of_birth=date.today() + timedelta(days=1)))
        assert excinfo.value.field == "date_of_birth"

    def test_bad_email(self, repo):
        with pytest.raises(ValidationError) as excinfo:
            repo.create(make_patient(email="not-an-email"))
        assert excinfo.value.field == "email"

    def test_blank_name(self, repo):
        with pytest.raises(ValidationError) as excinfo:
            repo.create(make_patient(first_name="   "))
        assert excinfo.value.field == "first_name"

    def test_creation_logged(self, repo, test_patient):
        history = repo.get_change_history(test_patient.id)
        assert {entry["change_type"] for entry in history} == {"CREATE"}
        assert "first_name" in {entry["field_name"] for entry in history}


class TestUpdatePatient:
    """Tests for patient updates with audit logging."""

    def test_update_logs_changes(self, repo, test_patient):
        updated = repo.update(test_patient.id, {"phone": "555-9999", "blood_type": BloodType.O_POSITIVE},
                              changed_by="front-desk")
        assert updated.phone == "555-9999"
        assert updated.blood_type == BloodType.O_POSITIVE

        updates = [e for e in repo.get_change_history(test_patient.id) if e["change_type"] == "UPDATE"]
        assert {e["field_name"] for e in updates} == {"phone", "blood_type"}
        phone = next(e for e in updates if e["field_name"] == "phone")
        assert phone["old_value"] == "555-FIXTURE"
        assert phone["new_value"] == "555-9999"
        assert phone["changed_by"] == "front-desk"

    def test_no_change_no_log(self, repo, test_patient):
        before = len(repo.get_change_history(test_patient.id))
        repo.update(test_patient.id, {"phone": "555-FIXTURE"})
        assert len(repo.get_change_history(test_patient.id)) == before

    def test_check_what_changed(self, repo, test_patient):
        changes = repo.check_what_changed(test_patient, {"phone": "555-1111", "first_name": "Test"})
        assert changes == {"phone": {"old": "555-FIXTURE", "new": "555-1111"}}

    def test_invalid_update_rejected(self, repo, test_patient):
        with pytest.raises(ValidationError):
            repo.update(test_patient.id, {"email": "broken"})
        assert repo.get_by_id(test_patient.id).email == "test.fixture@email.com"

    def test_update_unknown(self, repo):
        assert repo.update("missing", {"phone": "1"}) is None


class TestLifecycle:
    """Deactivation, summary and deletion."""

    def test_deactivate_and_reactivate(self, repo, test_patient):
        assert repo.deactivate(test_patient.id).status == PartyStatus.INACTIVE
        assert test_patient.id not in [p.id for p in repo.list_patients()]
        assert test_patient.id in [p.id for p in repo.list_patients(active_only=False)]
        assert repo.reactivate(test_patient.id).is_active

        statuses = [e for e in repo.get_change_history(test_patient.id) if e["change_type"] == "STATUS"]
        assert [e["new_value"] for e in statuses] == ["Active", "Inactive"]

    def test_summary(self, repo, test_patient):
        summary = repo.get_patient_summary(test_patient.id)
        assert summary["name"] == "Test Fixture"
        assert summary["upcoming_appointments"] == 0
        assert summary["recent_diagnoses"] == []
        assert repo.get_patient_summary("missing") is None

    def test_delete_without_dependents(self, repo, test_patient):
        assert repo.delete(test_patient.id)
        assert repo.get_by_id(test_patient.id) is None

    def test_delete_restricted_by_appointments(self, repo, book, patient):
        assert book("10:00").ok
        with pytest.raises(ReferentialConflictError) as excinfo:
            repo.delete(patient.id)
        assert excinfo.value.dependents == {"appointments": 1}
        assert repo.get_by_id(patient.id) is not None

    def test_delete_blocked_by_foreign_key(self, repo, book, patient):
        assert book("10:00").ok
        with patch("clinic_booking.clinic_data.database.patient_repository.count_references",
                   return_value={}):
            with pytest.raises(ReferentialConflictError) as excinfo:
                repo.delete(patient.id)
        assert excinfo.value.code == "REFERENTIAL_CONFLICT"
        assert repo.get_by_id(patient.id) is not None
