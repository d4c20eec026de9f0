"""Column catalogue for scholar_applications.

Each entry ties together the database column, the key used by the web form,
the export header and the spreadsheet headers accepted on import.
"""
from collections import namedtuple

Field = namedtuple("Field", "column form_key label aliases default")

FIELDS = (
    Field("application_no", "applicationNo", "Application No",
          ("ApplicationNo", "App No", "Application Number"), ""),
    Field("form_name", "formName", "Form Name", ("FormName", "Form"), "PhD Application Form"),
    Field("registered_name", "name", "Registered Name",
          ("Name", "Scholar Name", "Applicant Name", "Full Name", "Student Name"), ""),
    Field("institution", "institution", "Select Institution",
          ("Institution", "Institute", "University", "Select Institute"), ""),
    Field("program", "program", "Select Program", ("Program", "Course Name", "Programme"), ""),
    Field("program_type", "type", "Type", ("Study Type", "Program Type", "Mode"), ""),
    Field("faculty", "faculty", "Faculty", ("Faculty Name",), ""),
    Field("department", "department", "Department", ("Dept", "Department Name"), ""),
    Field("mobile_number", "mobile", "Mobile Number",
          ("Mobile", "Phone", "Contact Number", "Phone Number"), ""),
    Field("email", "email", "Email ID", ("Email", "E-mail", "Email Address"), ""),
    Field("date_of_birth", "dateOfBirth", "Date Of Birth", ("DOB", "Birth Date", "Date of Birth"), ""),
    Field("gender", "gender", "Gender", ("Sex",), "Male"),
    Field("graduated_from_india", "graduatedFromIndia", "Have You Graduated From India?",
          ("Graduated From India", "India Graduate"), "Yes"),
    Field("course", "course", "Course", (), ""),
    Field("employee_id", "employeeId", "1 - Employee Id",
          ("Employee ID", "EmployeeID", "Emp ID", "Employee Id"), ""),
    Field("designation", "designation", "1 - Designation", ("Designation", "Position", "Job Title"), ""),
    Field("organization_name", "organizationName", "1 - Organization Name",
          ("Organization Name", "Organization", "Company Name", "Employer"), ""),
    Field("organization_address", "organizationAddress", "1 - Organization Address",
          ("Organization Address", "Company Address", "Office Address"), ""),
    Field("differently_abled", "differentlyAbled", "Are You Differently Abled?",
          ("Are You Differently Abled ?", "Differently Abled", "Disabled", "PWD", "Disability"), "No"),
    Field("nature_of_deformity", "natureOfDeformity", "Nature Of Deformity",
          ("Disability Type", "Deformity Nature"), ""),
    Field("percentage_of_deformity", "percentageOfDeformity", "Percentage Of Deformity",
          ("Disability Percentage", "Deformity Percentage"), ""),
    Field("nationality", "nationality", "Nationality", ("Country",), "Indian"),
    Field("aadhaar_no", "aadhaarNo", "Aadhaar Card No.", ("Aadhaar No", "Aadhaar", "Aadhar Number"), ""),
    Field("mode_of_profession", "modeOfProfession", "Mode Of Profession (Industry/Academic)",
          ("Mode of Profession", "Profession Mode", "Profession Type"), "Academic"),
    Field("area_of_interest", "areaOfInterest", "Area Of Interest",
          ("Research Area", "Interest Area", "Specialization Area"), ""),
    Field("certificates", "certificates", "Certificates Drive Link",
          ("Certificates", "Certificate Link", "Certificates Link"), ""),
    Field("reasons_for_applying", "reasonsForApplying", "Reasons For Applying",
          ("Reasons", "Why Apply", "Reason For Applying"), ""),
    Field("research_interest", "researchInterest", "Research Interest", ("Interest",), ""),
    Field("user_id", "userId", "User Id", ("User ID", "UserID"), ""),
)

# UG / PG / other degree blocks share one layout
_DEGREE_PARTS = (
    ("qualification", "Qualification", "Current Education Qualification"),
    ("institute", "Institute", "Institute Name"),
    ("degree", "Degree", "Degree"),
    ("specialization", "Specialization", "Specialization"),
    ("marking_scheme", "MarkingScheme", "Marking Scheme"),
    ("cgpa", "Cgpa", "CGPA Or Percentage"),
    ("month_year", "MonthYear", "Month & Year"),
    ("registration_no", "RegistrationNo", "Registration No."),
    ("mode_of_study", "ModeOfStudy", "Mode Of Study"),
    ("place_of_institution", "PlaceOfInstitution", "Place Of The Institution"),
)

_DEGREE_DEFAULTS = {"marking_scheme": "CGPA", "mode_of_study": "Full Time"}


def _degree_fields(prefix, label_prefix, short_label):
    fields = []
    for part, form_suffix, label in _DEGREE_PARTS:
        aliases = [f"{short_label} {label}", f"{short_label} {form_suffix}"]
        if part == "cgpa":
            aliases += [f"{label_prefix} - CGPA / Percentage", f"{short_label} CGPA", f"{short_label} Percentage"]
        default = _DEGREE_DEFAULTS.get(part, "") if prefix != "other" else ""
        fields.append(
            Field(f"{prefix}_{part}", f"{prefix}{form_suffix}", f"{label_prefix} - {label}", tuple(aliases), default)
        )
    return fields


_EXAM_PARTS = (
    ("name", "Name", "Name Of The Exam"),
    ("reg_no", "RegNo", "Registration No./Roll No."),
    ("score", "Score", "Score Obtained"),
    ("max_score", "MaxScore", "Max Score"),
    ("year", "Year", "Year Appeared"),
    ("rank", "Rank", "AIR/Overall Rank"),
    ("qualified", "Qualified", "Qualified/Not Qualified"),
)


def _exam_fields(number):
    fields = []
    for part, form_suffix, label in _EXAM_PARTS:
        aliases = (f"Exam {number} {form_suffix}", f"Exam{number} {form_suffix}", f"{number}. {label}")
        fields.append(Field(f"exam{number}_{part}", f"exam{number}{form_suffix}", f"{number}. - {label}", aliases, ""))
    return fields


FIELDS = (
    FIELDS
    + tuple(_degree_fields("ug", "UG", "UG"))
    + tuple(_degree_fields("pg", "PG", "PG"))
    + tuple(_degree_fields("other", "Other Degree", "Other"))
    + (Field("competitive_exam", "competitiveExam", "Have You Taken Any Competitive Exam?",
             ("Competitive Exam", "Exam Taken"), ""),)
    + tuple(_exam_fields(1))
    + tuple(_exam_fields(2))
    + tuple(_exam_fields(3))
)

FIELDS_BY_COLUMN = {field.column: field for field in FIELDS}
FIELDS_BY_FORM_KEY = {field.form_key: field for field in FIELDS}
DATA_COLUMNS = tuple(field.column for field in FIELDS)

# Workflow columns are never written from form data
WORKFLOW_COLUMNS = (
    "status", "current_owner", "faculty_status", "dept_status", "dept_review", "dept_query",
    "query_timestamp", "reject_reason", "faculty_forward", "query_resolved", "query_resolved_dept",
)

# Extra columns shown in list exports
EXPORT_EXTRA_COLUMNS = (("status", "Status"), ("dept_review", "Department Review"), ("reject_reason", "Reject Reason"))


def form_to_db(data, apply_defaults=False):
    """Translate a form payload (camelCase keys or column names) to db columns."""
    row = {}
    for key, value in (data or {}).items():
        field = FIELDS_BY_FORM_KEY.get(key) or FIELDS_BY_COLUMN.get(key)
        if field is None:
            continue
        row[field.column] = value.strip() if isinstance(value, str) else value
    if apply_defaults:
        for field in FIELDS:
            if field.default and not row.get(field.column):
                row[field.column] = field.default
    return row


def db_to_form(row):
    form = {"id": (row or {}).get("id")}
    for field in FIELDS:
        form[field.form_key] = (row or {}).get(field.column) or ""
    for column in WORKFLOW_COLUMNS:
        form[column] = (row or {}).get(column)
    return form


def export_columns():
    """(column, header) pairs for a full scholar export."""
    return [(field.column, field.label) for field in FIELDS] + list(EXPORT_EXTRA_COLUMNS)


def header_aliases():
    """Map every accepted spreadsheet header (lower-cased) to its db column."""
    aliases = {}
    for field in FIELDS:
        for header in (field.label, field.column, field.form_key) + tuple(field.aliases):
            aliases.setdefault(header.strip().lower(), field.column)
    return aliases
