"""
Clinic Booking Database Schema
Reference data, patients and doctors, weekly doctor schedules, appointments,
medical records with prescriptions, and a change audit log.
"""

SCHEMA = """
-- =============================================================================
-- 1. DEPARTMENTS - Medical specializations
-- =============================================================================
CREATE TABLE IF NOT EXISTS departments (
    id TEXT PRIMARY KEY,
    department_name TEXT NOT NULL UNIQUE,
    department_head TEXT,
    location TEXT,
    phone TEXT,
    description TEXT,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,

    CONSTRAINT chk_department_name CHECK (LENGTH(TRIM(department_name)) > 0)
);


-- =============================================================================
-- 2. MEDICATIONS - Prescribable drugs
-- =============================================================================
CREATE TABLE IF NOT EXISTS medications (
    id TEXT PRIMARY KEY,
    medication_name TEXT NOT NULL UNIQUE,
    generic_name TEXT,
    manufacturer TEXT,
    dosage_form TEXT NOT NULL,
    strength TEXT,
    unit_price REAL,
    description TEXT,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,

    CONSTRAINT chk_medication_name CHECK (LENGTH(TRIM(medication_name)) > 0),
    CONSTRAINT chk_medication_form CHECK (
        dosage_form IN ('Tablet', 'Capsule', 'Liquid', 'Injection', 'Cream', 'Drops')
    ),
    CONSTRAINT chk_medication_price CHECK (unit_price IS NULL OR unit_price >= 0)
);


-- =============================================================================
-- 3. PATIENTS - Registered patients (soft-deactivated, never hard-deleted in use)
-- =============================================================================
CREATE TABLE IF NOT EXISTS patients (
    id TEXT PRIMARY KEY,
    patient_number TEXT NOT NULL UNIQUE,

    -- Patient Info
    first_name TEXT NOT NULL,
    last_name TEXT NOT NULL,
    date_of_birth TEXT NOT NULL,
    gender TEXT NOT NULL,
    phone TEXT NOT NULL,
    email TEXT,
    address TEXT NOT NULL,

    -- Emergency contact
    emergency_contact_name TEXT,
    emergency_contact_phone TEXT,

    -- Clinical background
    blood_type TEXT,
    allergies TEXT,
    medical_history TEXT,

    -- Insurance Info
    insurance_provider TEXT,
    insurance_policy_number TEXT,

    -- Lifecycle
    registration_date TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'Active',

    -- Metadata
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP,

    CONSTRAINT chk_patient_names CHECK (
        LENGTH(TRIM(first_name)) > 0 AND LENGTH(TRIM(last_name)) > 0
    ),
    CONSTRAINT chk_patient_email CHECK (email IS NULL OR email LIKE '%@%.%'),
    CONSTRAINT chk_patient_gender CHECK (gender IN ('Male', 'Female', 'Other')),
    CONSTRAINT chk_patient_blood_type CHECK (
        blood_type IS NULL
        OR blood_type IN ('A+', 'A-', 'B+', 'B-', 'AB+', 'AB-', 'O+', 'O-')
    ),
    CONSTRAINT chk_patient_status CHECK (status IN ('Active', 'Inactive'))
);

CREATE INDEX IF NOT EXISTS idx_patients_name ON patients(last_name, first_name);
CREATE INDEX IF NOT EXISTS idx_patients_phone ON patients(phone);
CREATE INDEX IF NOT EXISTS idx_patients_email ON patients(email);


-- =============================================================================
-- 4. DOCTORS - Clinical staff, owned by a department
-- =============================================================================
CREATE TABLE IF NOT EXISTS doctors (
    id TEXT PRIMARY KEY,
    doctor_number TEXT NOT NULL UNIQUE,
    first_name TEXT NOT NULL,
    last_name TEXT NOT NULL,
    specialization TEXT NOT NULL,
    department_id TEXT NOT NULL,
    phone TEXT NOT NULL,
    email TEXT NOT NULL UNIQUE,
    license_number TEXT NOT NULL UNIQUE,
    qualification TEXT,
    experience_years INTEGER,
    consultation_fee REAL NOT NULL,
    address TEXT,
    hire_date TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'Active',

    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP,

    FOREIGN KEY (department_id) REFERENCES departments(id)
        ON DELETE RESTRICT ON UPDATE CASCADE,

    CONSTRAINT chk_doctor_names CHECK (
        LENGTH(TRIM(first_name)) > 0 AND LENGTH(TRIM(last_name)) > 0
    ),
    CONSTRAINT chk_doctor_email CHECK (email LIKE '%@%.%'),
    CONSTRAINT chk_doctor_fee CHECK (consultation_fee > 0),
    CONSTRAINT chk_doctor_experience CHECK (experience_years IS NULL OR experience_years >= 0),
    CONSTRAINT chk_doctor_status CHECK (status IN ('Active', 'Inactive'))
);

CREATE INDEX IF NOT EXISTS idx_doctors_name ON doctors(last_name, first_name);
CREATE INDEX IF NOT EXISTS idx_doctors_specialization ON doctors(specialization);
CREATE INDEX IF NOT EXISTS idx_doctors_department ON doctors(department_id);


-- =============================================================================
-- 5. DOCTOR_SCHEDULES - Recurring weekly availability windows
-- =============================================================================
-- (doctor, day, start_time) uniqueness does not stop overlapping windows with
-- different start times; ScheduleRepository checks overlap before writing.
CREATE TABLE IF NOT EXISTS doctor_schedules (
    id TEXT PRIMARY KEY,
    doctor_id TEXT NOT NULL,
    day_of_week TEXT NOT NULL,
    start_time TEXT NOT NULL,   -- "09:00:00"
    end_time TEXT NOT NULL,     -- "17:00:00"
    max_patients_per_hour INTEGER NOT NULL DEFAULT 4,
    is_available INTEGER NOT NULL DEFAULT 1,

    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP,

    FOREIGN KEY (doctor_id) REFERENCES doctors(id)
        ON DELETE CASCADE ON UPDATE CASCADE,

    CONSTRAINT uk_doctor_schedule UNIQUE (doctor_id, day_of_week, start_time),
    CONSTRAINT chk_schedule_day CHECK (
        day_of_week IN ('Monday', 'Tuesday', 'Wednesday', 'Thursday',
                        'Friday', 'Saturday', 'Sunday')
    ),
    CONSTRAINT chk_schedule_times CHECK (end_time > start_time),
    CONSTRAINT chk_max_patients CHECK (max_patients_per_hour > 0)
);

CREATE INDEX IF NOT EXISTS idx_schedules_doctor_day ON doctor_schedules(doctor_id, day_of_week);


-- =============================================================================
-- 6. APPOINTMENTS - Bookings, written by the booking engine
-- =============================================================================
CREATE TABLE IF NOT EXISTS appointments (
    id TEXT PRIMARY KEY,
    appointment_number TEXT NOT NULL UNIQUE,
    patient_id TEXT NOT NULL,
    doctor_id TEXT NOT NULL,

    -- Scheduling
    appointment_date TEXT NOT NULL,   -- "2025-03-17"
    appointment_time TEXT NOT NULL,   -- "09:20:00"
    duration_minutes INTEGER NOT NULL DEFAULT 30,
    appointment_type TEXT NOT NULL,

    -- Scheduled, Confirmed, In Progress, Completed, Cancelled, No Show
    status TEXT NOT NULL DEFAULT 'Scheduled',

    reason_for_visit TEXT,
    notes TEXT,
    consultation_fee REAL,

    -- Timestamps
    booked_at TEXT NOT NULL,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP,

    FOREIGN KEY (patient_id) REFERENCES patients(id)
        ON DELETE RESTRICT ON UPDATE CASCADE,
    FOREIGN KEY (doctor_id) REFERENCES doctors(id)
        ON DELETE RESTRICT ON UPDATE CASCADE,

    CONSTRAINT chk_appointment_date CHECK (appointment_date >= SUBSTR(booked_at, 1, 10)),
    CONSTRAINT chk_appointment_duration CHECK (duration_minutes > 0),
    CONSTRAINT chk_appointment_fee CHECK (consultation_fee IS NULL OR consultation_fee >= 0),
    CONSTRAINT chk_appointment_type CHECK (
        appointment_type IN ('Consultation', 'Follow-up', 'Emergency',
                             'Routine Check', 'Vaccination')
    ),
    CONSTRAINT chk_appointment_status CHECK (
        status IN ('Scheduled', 'Confirmed', 'In Progress', 'Completed',
                   'Cancelled', 'No Show')
    )
);

CREATE INDEX IF NOT EXISTS idx_appointments_patient ON appointments(patient_id);
CREATE INDEX IF NOT EXISTS idx_appointments_doctor_date ON appointments(doctor_id, appointment_date);
CREATE INDEX IF NOT EXISTS idx_appointments_status ON appointments(status);

-- Backstop against two live bookings starting at the same doctor/date/time
CREATE UNIQUE INDEX IF NOT EXISTS uq_appointments_live_slot
    ON appointments(doctor_id, appointment_date, appointment_time)
    WHERE status NOT IN ('Cancelled', 'No Show');


-- =============================================================================
-- 7. MEDICAL_RECORDS - Clinical encounter notes
-- =============================================================================
CREATE TABLE IF NOT EXISTS medical_records (
    id TEXT PRIMARY KEY,
    patient_id TEXT NOT NULL,
    doctor_id TEXT NOT NULL,
    appointment_id TEXT,
    record_date TEXT NOT NULL,

    chief_complaint TEXT,
    diagnosis TEXT,
    treatment_plan TEXT,
    vital_signs TEXT,  -- JSON object: {"blood_pressure": "140/90", "heart_rate": 78}
    symptoms TEXT,
    examination_notes TEXT,
    lab_results TEXT,
    follow_up_instructions TEXT,
    next_appointment_recommended INTEGER NOT NULL DEFAULT 0,

    created_at TEXT DEFAULT CURRENT_TIMESTAMP,

    FOREIGN KEY (patient_id) REFERENCES patients(id)
        ON DELETE RESTRICT ON UPDATE CASCADE,
    FOREIGN KEY (doctor_id) REFERENCES doctors(id)
        ON DELETE RESTRICT ON UPDATE CASCADE,
    FOREIGN KEY (appointment_id) REFERENCES appointments(id)
        ON DELETE SET NULL ON UPDATE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_records_patient ON medical_records(patient_id);
CREATE INDEX IF NOT EXISTS idx_records_doctor ON medical_records(doctor_id);
CREATE INDEX IF NOT EXISTS idx_records_appointment ON medical_records(appointment_id);


-- =============================================================================
-- 8. PRESCRIPTIONS - Medical record <-> medication
-- =============================================================================
CREATE TABLE IF NOT EXISTS prescriptions (
    id TEXT PRIMARY KEY,
    record_id TEXT NOT NULL,
    medication_id TEXT NOT NULL,
    dosage TEXT NOT NULL,
    frequency TEXT NOT NULL,
    duration_days INTEGER NOT NULL,
    quantity INTEGER NOT NULL,
    instructions TEXT,
    start_date TEXT NOT NULL,
    end_date TEXT,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,

    FOREIGN KEY (record_id) REFERENCES medical_records(id)
        ON DELETE CASCADE ON UPDATE CASCADE,
    FOREIGN KEY (medication_id) REFERENCES medications(id)
        ON DELETE RESTRICT ON UPDATE CASCADE,

    CONSTRAINT chk_prescription_duration CHECK (duration_days > 0),
    CONSTRAINT chk_prescription_quantity CHECK (quantity > 0),
    CONSTRAINT chk_prescription_dates CHECK (end_date IS NULL OR end_date >= start_date)
);

CREATE INDEX IF NOT EXISTS idx_prescriptions_record ON prescriptions(record_id);
CREATE INDEX IF NOT EXISTS idx_prescriptions_medication ON prescriptions(medication_id);


-- =============================================================================
-- 9. CHANGE_LOG - Audit trail for party changes and appointment status
-- =============================================================================
CREATE TABLE IF NOT EXISTS change_log (
    id TEXT PRIMARY KEY,
    entity TEXT NOT NULL,         -- patient, doctor, appointment
    entity_id TEXT NOT NULL,
    field_name TEXT NOT NULL,
    old_value TEXT,
    new_value TEXT,
    change_type TEXT NOT NULL,    -- CREATE, UPDATE, STATUS
    changed_at TEXT NOT NULL,
    changed_by TEXT
);

CREATE INDEX IF NOT EXISTS idx_change_log_entity ON change_log(entity, entity_id);
CREATE INDEX IF NOT EXISTS idx_change_log_time ON change_log(changed_at);
"""
