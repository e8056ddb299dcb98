"""Seed the database with sample departments, medications, patients, doctors and schedules."""

from datetime import date, datetime, time, timedelta

from clinic_booking.booking_engine import BookingEngine
from clinic_booking.clinic_data.database import (
    DoctorRepository,
    PatientRepository,
    ScheduleRepository,
    init_database,
)
from clinic_booking.clinic_data.database.doctor_repository import Doctor
from clinic_booking.clinic_data.database.enums import (
    AppointmentType,
    BloodType,
    DayOfWeek,
    DosageForm,
    Gender,
)
from clinic_booking.clinic_data.database.medical_record_repository import (
    MedicalRecord,
    MedicalRecordRepository,
    Prescription,
    PrescriptionRepository,
)
from clinic_booking.clinic_data.database.patient_repository import Patient
from clinic_booking.clinic_data.database.reference_repository import (
    Department,
    DepartmentRepository,
    Medication,
    MedicationRepository,
)
from clinic_booking.clinic_data.database.schedule_repository import DoctorSchedule


MOCK_DEPARTMENTS = [
    Department(None, "Cardiology", "Dr. Sarah Johnson", "Building A - Floor 2", "555-0101",
               "Heart and cardiovascular system treatment"),
    Department(None, "Pediatrics", "Dr. Michael Chen", "Building B - Floor 1", "555-0102",
               "Medical care for infants, children, and adolescents"),
    Department(None, "Orthopedics", "Dr. Emily Rodriguez", "Building A - Floor 3", "555-0103",
               "Musculoskeletal system disorders and injuries"),
    Department(None, "General Medicine", "Dr. David Wilson", "Building B - Floor 2", "555-0104",
               "Primary healthcare and general medical conditions"),
    Department(None, "Dermatology", "Dr. Lisa Anderson", "Building C - Floor 1", "555-0105",
               "Skin, hair, and nail conditions"),
]

MOCK_MEDICATIONS = [
    Medication(None, "Lisinopril", DosageForm.TABLET, "Lisinopril", "Generic Pharma", "10mg", 0.25,
               "ACE inhibitor for blood pressure"),
    Medication(None, "Amoxicillin", DosageForm.CAPSULE, "Amoxicillin", "Antibiotics Inc", "500mg", 0.50,
               "Penicillin antibiotic"),
    Medication(None, "Ibuprofen", DosageForm.TABLET, "Ibuprofen", "Pain Relief Co", "200mg", 0.15,
               "Non-steroidal anti-inflammatory drug"),
    Medication(None, "Metformin", DosageForm.TABLET, "Metformin HCl", "Diabetes Care", "500mg", 0.30,
               "Type 2 diabetes medication"),
    Medication(None, "Aspirin", DosageForm.TABLET, "Acetylsalicylic Acid", "Heart Health", "81mg", 0.10,
               "Low-dose aspirin for heart protection"),
]

MOCK_PATIENTS = [
    Patient(
        id=None,
        patient_number="PT001",
        first_name="John",
        last_name="Smith",
        date_of_birth=date(1985, 3, 15),
        gender=Gender.MALE,
        phone="555-1001",
        email="john.smith@email.com",
        address="123 Main St, City, State",
        emergency_contact_name="Jane Smith",
        emergency_contact_phone="555-1002",
        blood_type=BloodType.A_POSITIVE,
    ),
    Patient(
        id=None,
        patient_number="PT002",
        first_name="Mary",
        last_name="Johnson",
        date_of_birth=date(1992, 7, 22),
        gender=Gender.FEMALE,
        phone="555-1003",
        email="mary.johnson@email.com",
        address="456 Oak Ave, City, State",
        emergency_contact_name="Robert Johnson",
        emergency_contact_phone="555-1004",
        blood_type=BloodType.O_NEGATIVE,
    ),
    Patient(
        id=None,
        patient_number="PT003",
        first_name="Robert",
        last_name="Davis",
        date_of_birth=date(1978, 11, 8),
        gender=Gender.MALE,
        phone="555-1005",
        email="robert.davis@email.com",
        address="789 Pine St, City, State",
        emergency_contact_name="Susan Davis",
        emergency_contact_phone="555-1006",
        blood_type=BloodType.B_POSITIVE,
    ),
    Patient(
        id=None,
        patient_number="PT004",
        first_name="Sarah",
        last_name="Wilson",
        date_of_birth=date(1995, 1, 30),
        gender=Gender.FEMALE,
        phone="555-1007",
        email="sarah.wilson@email.com",
        address="321 Elm Dr, City, State",
        emergency_contact_name="Mike Wilson",
        emergency_contact_phone="555-1008",
        blood_type=BloodType.AB_POSITIVE,
    ),
    Patient(
        id=None,
        patient_number="PT005",
        first_name="Emily",
        last_name="Brown",
        date_of_birth=date(2010, 5, 12),
        gender=Gender.FEMALE,
        phone="555-1009",
        email="emily.parent@email.com",
        address="654 Maple Ln, City, State",
        emergency_contact_name="Lisa Brown",
        emergency_contact_phone="555-1010",
        blood_type=BloodType.A_NEGATIVE,
    ),
]

# (doctor fields, department name)
MOCK_DOCTORS = [
    (dict(doctor_number="DR001", first_name="Sarah", last_name="Johnson", specialization="Cardiologist",
          phone="555-2001", email="sarah.johnson@clinic.com", license_number="LIC001",
          qualification="MD Cardiology, Board Certified", experience_years=15,
          consultation_fee=200.00, hire_date=date(2010, 1, 15)), "Cardiology"),
    (dict(doctor_number="DR002", first_name="Michael", last_name="Chen", specialization="Pediatrician",
          phone="555-2002", email="michael.chen@clinic.com", license_number="LIC002",
          qualification="MD Pediatrics, FAAP", experience_years=12,
          consultation_fee=150.00, hire_date=date(2012, 3, 20)), "Pediatrics"),
    (dict(doctor_number="DR003", first_name="Emily", last_name="Rodriguez", specialization="Orthopedic Surgeon",
          phone="555-2003", email="emily.rodriguez@clinic.com", license_number="LIC003",
          qualification="MD Orthopedic Surgery", experience_years=18,
          consultation_fee=300.00, hire_date=date(2008, 6, 10)), "Orthopedics"),
    (dict(doctor_number="DR004", first_name="David", last_name="Wilson", specialization="General Practitioner",
          phone="555-2004", email="david.wilson@clinic.com", license_number="LIC004",
          qualification="MD Family Medicine", experience_years=10,
          consultation_fee=120.00, hire_date=date(2014, 9, 5)), "General Medicine"),
    (dict(doctor_number="DR005", first_name="Lisa", last_name="Anderson", specialization="Dermatologist",
          phone="555-2005", email="lisa.anderson@clinic.com", license_number="LIC005",
          qualification="MD Dermatology", experience_years=8,
          consultation_fee=180.00, hire_date=date(2016, 11, 12)), "Dermatology"),
]

# doctor number -> (days, start, end, max patients per hour)
MOCK_SCHEDULES = {
    "DR001": ([DayOfWeek.MONDAY, DayOfWeek.WEDNESDAY, DayOfWeek.FRIDAY], time(9), time(17), 3),
    "DR002": ([DayOfWeek.MONDAY, DayOfWeek.TUESDAY, DayOfWeek.THURSDAY], time(8), time(16), 4),
    "DR003": ([DayOfWeek.TUESDAY, DayOfWeek.THURSDAY], time(10), time(18), 2),
    "DR004": ([DayOfWeek.MONDAY, DayOfWeek.TUESDAY, DayOfWeek.WEDNESDAY,
               DayOfWeek.THURSDAY, DayOfWeek.FRIDAY], time(8), time(17), 5),
}

# (patient number, doctor number, time, type, reason)
MOCK_BOOKINGS = [
    ("PT001", "DR001", time(10), AppointmentType.CONSULTATION, "Chest pain and shortness of breath"),
    ("PT005", "DR002", time(14, 30), AppointmentType.ROUTINE_CHECK, "Annual pediatric checkup"),
    ("PT003", "DR004", time(11), AppointmentType.FOLLOW_UP, "Follow-up for diabetes management"),
]


def next_weekday(day: DayOfWeek, start: date) -> date:
    """First date on or after ``start`` falling on ``day``."""
    offset = (list(DayOfWeek).index(day) - start.weekday()) % 7
    return start + timedelta(days=offset)


def seed_database():
    """Seed database with mock data, skipping rows that already exist."""
    init_database()

    departments = DepartmentRepository()
    medications = MedicationRepository()
    patients = PatientRepository()
    doctors = DoctorRepository()
    schedules = ScheduleRepository()

    print("Creating departments...")
    for department in MOCK_DEPARTMENTS:
        if departments.get_by_name(department.department_name):
            print(f"  Skipping {department.department_name} (already exists)")
            continue
        departments.create(department)
        print(f"  Created {department.department_name}")

    print("Creating medications...")
    for medication in MOCK_MEDICATIONS:
        if medications.get_by_name(medication.medication_name):
            print(f"  Skipping {medication.medication_name} (already exists)")
            continue
        medications.create(medication)
        print(f"  Created {medication.medication_name}")

    print("Creating patients...")
    for patient in MOCK_PATIENTS:
        if patients.get_by_number(patient.patient_number):
            print(f"  Skipping {patient.full_name} (already exists)")
            continue
        patients.create(patient, changed_by="seed")
        print(f"  Created {patient.full_name}")

    print("Creating doctors and schedules...")
    for fields, department_name in MOCK_DOCTORS:
        if doctors.get_by_number(fields["doctor_number"]):
            print(f"  Skipping {fields['doctor_number']} (already exists)")
            continue
        department = departments.get_by_name(department_name)
        doctor = doctors.create(Doctor(id=None, department_id=department.id, **fields), changed_by="seed")
        print(f"  Created {doctor.full_name}")

        days, start, end, per_hour = MOCK_SCHEDULES.get(doctor.doctor_number, ([], None, None, None))
        for day in days:
            schedules.create(DoctorSchedule(
                id=None, doctor_id=doctor.id, day_of_week=day,
                start_time=start, end_time=end, max_patients_per_hour=per_hour,
            ))
        if days:
            print(f"    {len(days)} weekly window(s)")

    print("Booking sample appointments...")
    engine = BookingEngine()
    records = MedicalRecordRepository()
    prescriptions = PrescriptionRepository()
    tomorrow = date.today() + timedelta(days=1)
    booked = 0

    for patient_number, doctor_number, at, kind, reason in MOCK_BOOKINGS:
        patient = patients.get_by_number(patient_number)
        doctor = doctors.get_by_number(doctor_number)
        days = MOCK_SCHEDULES[doctor_number][0]
        on_date = min(next_weekday(day, tomorrow) for day in days)
        result = engine.request_booking(
            patient.id, doctor.id, on_date, at,
            appointment_type=kind, reason_for_visit=reason, booked_by="seed",
        )
        if result.ok:
            booked += 1
            print(f"  Booked {result.appointment.appointment_number} on {on_date} at {at:%H:%M}")
        else:
            print(f"  Skipped {patient_number} with {doctor_number}: {result.rejection.value}")

    print("Creating sample medical record...")
    patient = patients.get_by_number("PT003")
    doctor = doctors.get_by_number("DR004")
    if not records.list_for_patient(patient.id):
        record = records.create(MedicalRecord(
            id=None,
            patient_id=patient.id,
            doctor_id=doctor.id,
            record_date=datetime.now().replace(microsecond=0),
            chief_complaint="Fatigue and increased thirst",
            diagnosis="Type 2 Diabetes Mellitus",
            treatment_plan="Lifestyle modification and medication",
            vital_signs={"blood_pressure": "140/90", "heart_rate": 78, "temperature": 98.6,
                         "weight": 180, "height": 70},
            symptoms="Polyuria, polydipsia, fatigue",
            next_appointment_recommended=True,
        ))
        prescriptions.create(Prescription(
            id=None,
            record_id=record.id,
            medication_id=medications.get_by_name("Metformin").id,
            dosage="500mg",
            frequency="Twice daily",
            duration_days=90,
            quantity=180,
            instructions="Take with meals",
        ))
        print("  Created record with 1 prescription")

    print("\nDatabase seeded successfully!")
    print(f"  - {len(MOCK_DEPARTMENTS)} departments")
    print(f"  - {len(MOCK_MEDICATIONS)} medications")
    print(f"  - {len(MOCK_PATIENTS)} patients")
    print(f"  - {len(MOCK_DOCTORS)} doctors")
    print(f"  - {booked} appointments booked")


if __name__ == "__main__":
    seed_database()
