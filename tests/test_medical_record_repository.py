"""Tests for medical records and prescriptions."""

from datetime import date, datetime
from unittest.mock import patch

import pytest

from clinic_booking.clinic_data.database.appointment_repository import AppointmentRepository
from clinic_booking.clinic_data.database.errors import ReferentialConflictError, ValidationError
from clinic_booking.clinic_data.database.medical_record_repository import (
    MedicalRecord,
    MedicalRecordRepository,
    Prescription,
    PrescriptionRepository,
)
from clinic_booking.clinic_data.database.patient_repository import PatientRepository
from clinic_booking.clinic_data.database.reference_repository import MedicationRepository


@pytest.fixture
def records():
    return MedicalRecordRepository()


@pytest.fixture
def prescriptions():
    return PrescriptionRepository()


@pytest.fixture
def visit(book, engine):
    """An appointment that has been checked in."""
    appointment = book("10:00").appointment
    engine.confirm(appointment.id)
    return engine.check_in(appointment.id)


@pytest.fixture
def record(records, patient, doctor):
    return records.create(MedicalRecord(
        id=None,
        patient_id=patient.id,
        doctor_id=doctor.id,
        record_date=datetime(2026, 10, 1, 9, 30),
        diagnosis="Hypertension",
        vital_signs={"blood_pressure": "140/90", "heart_rate": 78},
    ))


def prescription_for(record_id, medication_id, **overrides):
    fields = dict(
        id=None,
        record_id=record_id,
        medication_id=medication_id,
        dosage="500mg",
        frequency="Twice daily",
        duration_days=90,
        quantity=180,
        start_date=date(2026, 10, 1),
    )
    fields.update(overrides)
    return Prescription(**fields)


class TestMedicalRecords:
    """Creating and reading records."""

    def test_create(self, record, patient):
        assert record.diagnosis == "Hypertension"
        assert record.vital_signs == {"blood_pressure": "140/90", "heart_rate": 78}
        assert record.appointment_id is None
        assert not record.next_appointment_recommended

    def test_record_date_defaults_to_now(self, records, patient, doctor):
        created = records.create(MedicalRecord(id=None, patient_id=patient.id, doctor_id=doctor.id))
        assert created.record_date.date() == date.today()

    def test_bad_vital_signs(self, records, patient, doctor):
        with pytest.raises(ValidationError) as excinfo:
            records.create(MedicalRecord(
                id=None, patient_id=patient.id, doctor_id=doctor.id,
                vital_signs={"blood_pressure": "high"},
            ))
        assert excinfo.value.field == "vital_signs.blood_pressure"

    def test_unknown_patient(self, records, doctor):
        with pytest.raises(ReferentialConflictError):
            records.create(MedicalRecord(id=None, patient_id="missing", doctor_id=doctor.id))

    def test_list_for_patient_newest_first(self, records, record, patient, doctor):
        later = records.create(MedicalRecord(
            id=None, patient_id=patient.id, doctor_id=doctor.id,
            record_date=datetime(2026, 10, 8, 9, 0), diagnosis="Follow-up",
        ))
        assert [r.id for r in records.list_for_patient(patient.id)] == [later.id, record.id]
        assert PatientRepository().get_patient_summary(patient.id)["recent_diagnoses"] == [
            "Follow-up", "Hypertension",
        ]


class TestRecordsForAppointments:
    """Records attached to an appointment."""

    def test_attach_to_checked_in_visit(self, records, visit, patient, doctor):
        created = records.create(MedicalRecord(
            id=None, patient_id=patient.id, doctor_id=doctor.id, appointment_id=visit.id,
        ))
        assert [r.id for r in records.list_for_appointment(visit.id)] == [created.id]

    def test_scheduled_appointment_rejected(self, records, book, patient, doctor):
        appointment = book("11:00").appointment
        with pytest.raises(ValidationError) as excinfo:
            records.create(MedicalRecord(
                id=None, patient_id=patient.id, doctor_id=doctor.id, appointment_id=appointment.id,
            ))
        assert excinfo.value.field == "appointment_id"

    def test_other_patients_appointment_rejected(self, records, visit, other_patient, doctor):
        with pytest.raises(ValidationError):
            records.create(MedicalRecord(
                id=None, patient_id=other_patient.id, doctor_id=doctor.id, appointment_id=visit.id,
            ))

    def test_appointment_delete_sets_null(self, records, visit, patient, doctor):
        created = records.create(MedicalRecord(
            id=None, patient_id=patient.id, doctor_id=doctor.id, appointment_id=visit.id,
        ))
        assert AppointmentRepository().delete(visit.id)
        assert records.get_by_id(created.id).appointment_id is None


class TestPrescriptions:
    """Prescriptions and their cascade and restrict rules."""

    def test_create_and_list_active(self, prescriptions, record, medication, patient):
        created = prescriptions.create(prescription_for(record.id, medication.id))
        assert created.is_active
        assert created.end_date is None
        assert [p.id for p in prescriptions.list_active_for_patient(patient.id)] == [created.id]

    def test_start_date_defaults_to_today(self, prescriptions, record, medication):
        created = prescriptions.create(prescription_for(record.id, medication.id, start_date=None))
        assert created.start_date == date.today()

    @pytest.mark.parametrize("field", ["duration_days", "quantity"])
    def test_counts_must_be_positive(self, prescriptions, record, medication, field):
        with pytest.raises(ValidationError) as excinfo:
            prescriptions.create(prescription_for(record.id, medication.id, **{field: 0}))
        assert excinfo.value.field == field

    def test_end_before_start(self, prescriptions, record, medication):
        with pytest.raises(ValidationError) as excinfo:
            prescriptions.create(prescription_for(record.id, medication.id, end_date=date(2026, 9, 30)))
        assert excinfo.value.field == "end_date"

    def test_discontinue(self, prescriptions, record, medication, patient):
        created = prescriptions.create(prescription_for(record.id, medication.id))
        stopped = prescriptions.discontinue(created.id, end_date=date(2026, 10, 15))
        assert not stopped.is_active
        assert stopped.end_date == date(2026, 10, 15)
        assert prescriptions.list_active_for_patient(patient.id) == []

    def test_discontinue_before_start(self, prescriptions, record, medication):
        created = prescriptions.create(prescription_for(record.id, medication.id))
        with pytest.raises(ValidationError):
            prescriptions.discontinue(created.id, end_date=date(2026, 9, 1))

    def test_unknown_medication(self, prescriptions, record):
        with pytest.raises(ReferentialConflictError):
            prescriptions.create(prescription_for(record.id, "missing"))

    def test_record_delete_cascades(self, records, prescriptions, record, medication):
        created = prescriptions.create(prescription_for(record.id, medication.id))
        assert records.delete(record.id)
        assert prescriptions.get_by_id(created.id) is None

    def test_prescribed_medication_cannot_be_deleted(self, prescriptions, record, medication):
        prescriptions.create(prescription_for(record.id, medication.id))
        with pytest.raises(ReferentialConflictError) as excinfo:
            MedicationRepository().delete(medication.id)
        assert excinfo.value.dependents == {"prescriptions": 1}

    def test_medication_delete_blocked_by_foreign_key(self, prescriptions, record, medication):
        """A prescription written after the dependent count still blocks the delete."""
        prescriptions.create(prescription_for(record.id, medication.id))
        with patch("clinic_booking.clinic_data.database.reference_repository.count_references",
                   return_value={}):
            with pytest.raises(ReferentialConflictError) as excinfo:
                MedicationRepository().delete(medication.id)
        assert excinfo.value.entity == "medication"
        assert MedicationRepository().get_by_id(medication.id) is not None
