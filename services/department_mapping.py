"""Faculty and department inference from free-text program names.

Program strings arrive from application forms and spreadsheets, e.g.
``"Ph.d. - Computer Science And Engineering (ph.d. - E and T - Full Time)"``.
Routing needs a canonical faculty and a department code, so everything here
is keyword matching over lower-cased text.
"""
import re

ENGINEERING = "Faculty of Engineering & Technology"
SCIENCE = "Faculty of Science & Humanities"
MANAGEMENT = "Faculty of Management"
MEDICAL = "Faculty of Medical & Health Science"

FACULTIES = (ENGINEERING, SCIENCE, MANAGEMENT, MEDICAL)

FACULTY_SHORT_NAMES = {
    ENGINEERING: "Engineering",
    SCIENCE: "Science",
    MANAGEMENT: "Management",
    MEDICAL: "Medical",
}

FULL_TIME = "Full Time"
PART_TIME = "Part Time"
PART_TIME_INTERNAL = "Part Time Internal"
PART_TIME_EXTERNAL = "Part Time External"
PART_TIME_INDUSTRY = "Part Time External (Industry)"
PROGRAM_TYPES = (FULL_TIME, PART_TIME_INTERNAL, PART_TIME_EXTERNAL, PART_TIME_INDUSTRY, PART_TIME)

UNKNOWN_CODE = "UNKNOWN"

# Lower-cased program name (prefix and bracket removed) -> department code.
# Subjects taught in more than one faculty resolve to their science/medical
# code here; faculty context in department_from_program overrides that.
PROGRAM_TO_DEPARTMENT = {
    # Engineering & Technology
    "biomedical engineering": "BME",
    "biomedical": "BME",
    "bio-technology": "ENGBIO",
    "biotech": "ENGBIO",
    "biotechnology": "BIO_SCI",
    "chemical engineering": "ENGCHEM",
    "civil engineering": "CIVIL",
    "civil": "CIVIL",
    "computer science and engineering": "CSE",
    "computer science & engineering": "CSE",
    "computer science engineering": "CSE",
    "cse": "CSE",
    "electrical and electronics engineering": "EEE",
    "electrical & electronics engineering": "EEE",
    "electrical": "EEE",
    "eee": "EEE",
    "electronics and communication engineering": "ECE",
    "electronics & communication engineering": "ECE",
    "electronics": "ECE",
    "ece": "ECE",
    "english engineering": "ENGENG",
    "maths": "ENGMATH",
    "mathematics engineering": "ENGMATH",
    "mechanical engineering": "MECH",
    "mechanical": "MECH",
    "physics engineering": "ENGPHYS",
    # Management
    "management": "MBA",
    "management studies": "MBA",
    "mba": "MBA",
    "business administration": "MBA",
    "physical education": "PED",
    "physical edu": "PED",
    "sports": "PED",
    # Science & Humanities
    "commerce": "COMM",
    "computer science": "CS_SCI",
    "biochemistry": "BIOCHEM_MED",
    "microbiology": "MICRO_MED",
    "mathematics": "MATH_SCI",
    "physics": "PHYS_SCI",
    "chemistry": "CHEM_SCI",
    "english": "ENGENG",
    "english & foreign languages": "EFL",
    "english and foreign languages": "EFL",
    "foreign languages": "EFL",
    "fashion design": "FASHION",
    "fashion designing": "FASHION",
    "tamil": "TAMIL",
    "visual communication": "VISCOM",
    "visual communications": "VISCOM",
    # Medical & Health Science
    "occupational therapy": "OT",
    "occupational": "OT",
    "medical imaging technology": "MIT",
    "medical imaging": "MIT",
    "imaging technology": "MIT",
    "clinical psychology": "CP",
    "psychology": "CP",
    "renal dialysis technology": "RDT",
    "renal dialysis": "RDT",
    "dialysis": "RDT",
    "anaesthesia technology": "AT",
    "anaesthesia": "AT",
    "anesthesia": "AT",
    # Dental legacy departments
    "department of basic medical sciences": "BMS",
    "basic medical sciences": "BMS",
    "conservative dentistry": "CDE",
    "oral pathology": "OMPM",
    "oral surgery": "OMS",
    "oral medicine": "OMR",
    "orthodontics": "ORTHO",
    "pediatric dentistry": "PPD",
    "periodontics": "POI",
    "prosthodontics": "PROSTH",
    "public health dentistry": "PHD",
}

# Longest keys first so "computer science and engineering" wins over "computer science"
_PARTIAL_PATTERNS = [
    (re.compile(r"\b" + re.escape(key) + r"\b"), code)
    for key, code in sorted(PROGRAM_TO_DEPARTMENT.items(), key=lambda item: len(item[0]), reverse=True)
]

DENTAL_CODES = ("BMS", "CDE", "OMPM", "OMS", "OMR", "ORTHO", "PPD", "POI", "PROSTH", "PHD")

DEPARTMENT_TO_FACULTY = {
    **{code: ENGINEERING for code in (
        "BME", "ENGBIO", "ENGCHEM", "CIVIL", "CSE", "EEE", "ECE", "ENGENG", "ENGMATH", "MECH", "ENGPHYS",
    )},
    **{code: MANAGEMENT for code in ("MBA", "PED")},
    **{code: SCIENCE for code in (
        "COMM", "CS_SCI", "BIO_SCI", "BIOCHEM_SCI", "MICRO_SCI", "MATH_SCI", "PHYS_SCI", "CHEM_SCI",
        "EFL", "FASHION", "TAMIL", "VISCOM",
    )},
    **{code: MEDICAL for code in ("BIOCHEM_MED", "MICRO_MED", "OT", "MIT", "CP", "RDT", "AT") + DENTAL_CODES},
}

# Subjects shared across faculties: (keywords, engineering, science, medical)
_CONTEXT_SUBJECTS = (
    (("biotechnology", "bio-technology", "biotech"), "ENGBIO", "BIO_SCI", None),
    (("biochemistry",), None, "BIOCHEM_SCI", "BIOCHEM_MED"),
    (("microbiology",), None, "MICRO_SCI", "MICRO_MED"),
    (("computer science",), "CSE", "CS_SCI", None),
    (("mathematics", "maths"), "ENGMATH", "MATH_SCI", None),
    (("physics",), "ENGPHYS", "PHYS_SCI", None),
    (("chemistry",), "ENGCHEM", "CHEM_SCI", None),
    # Science scholars in English belong to EFL; elsewhere the bare key maps to ENGENG
    (("english",), None, "EFL", None),
)

_PHD_PREFIX = re.compile(r"^ph\.?d\.?\s*-?\s*", re.IGNORECASE)


def _lower(value):
    return str(value or "").strip().lower()


def _has_any(text, keywords):
    return any(keyword in text for keyword in keywords)


def normalize_faculty(text):
    """Map any spelling of a faculty (full name, abbreviation, status text) to its canonical name."""
    value = _lower(text).replace("&", "and")
    if not value:
        return None
    value = re.sub(r"\s+", " ", value)
    if _has_any(value, ("medical", "health", "dental", "fmhs")):
        return MEDICAL
    if _has_any(value, ("engineering", "technology", "e and t", "foet")):
        return ENGINEERING
    if _has_any(value, ("management", "business", "mgt")):
        return MANAGEMENT
    if _has_any(value, ("science", "humanities", "s and h", "fsh")):
        return SCIENCE
    return None


def faculty_short_name(faculty):
    canonical = normalize_faculty(faculty)
    return FACULTY_SHORT_NAMES.get(canonical) if canonical else None


def faculty_from_program(program, institution=None):
    """Infer a faculty from a program string, then from the institution name."""
    text = _lower(program)
    if text:
        if _has_any(text, (" - hs", "(hs)")):
            return MEDICAL
        if _has_any(text, (" - mgt", "(mgt)")):
            return MANAGEMENT
        if _has_any(text, ("s and h", "s & h")):
            return SCIENCE
        if _has_any(text, ("e and t", "e & t")):
            return ENGINEERING
        # Pure science subjects sometimes carry "technology" in the bracket text
        if _has_any(text, ("chemistry", "physics", "mathematics", "english")):
            return SCIENCE
        # Medical before engineering: "Medical Imaging Technology" is medical
        if _has_any(text, (
            "medical", "health", "medicine", "nursing", "pharmacy", "physiotherapy", "therapy",
            "anaesthesia", "renal", "clinical", "surgery", "dental", "psychology",
        )):
            return MEDICAL
        if _has_any(text, ("management", "business", "commerce", "mba")):
            return MANAGEMENT
        if _has_any(text, ("engineering", "technology")):
            return ENGINEERING
        if _has_any(text, ("science", "humanities", "arts")):
            return SCIENCE

    inst = _lower(institution)
    if inst:
        if _has_any(inst, ("medical", "health")):
            return MEDICAL
        if _has_any(inst, ("management", "business")):
            return MANAGEMENT
        if _has_any(inst, ("science", "humanities")):
            return SCIENCE
        if _has_any(inst, ("engineering", "technology")):
            return ENGINEERING
    return None


def clean_program(program):
    """Lower-case program name with the Ph.D. prefix and bracketed suffix removed."""
    text = _PHD_PREFIX.sub("", _lower(program))
    return text.split("(", 1)[0].strip()


def department_name_from_program(program):
    """Human-readable department name, e.g. "Computer Science And Engineering"."""
    text = str(program or "").split("(", 1)[0].strip()
    return _PHD_PREFIX.sub("", text).strip()


def department_from_program(program, faculty=None):
    """Resolve a department code from a program string, or None."""
    name = clean_program(program)
    if not name:
        return None

    faculty_name = normalize_faculty(faculty) if faculty else None
    if faculty_name:
        for keywords, engineering, science, medical in _CONTEXT_SUBJECTS:
            if not _has_any(name, keywords):
                continue
            code = {ENGINEERING: engineering, SCIENCE: science, MEDICAL: medical}.get(faculty_name)
            if code:
                return code

    if name in PROGRAM_TO_DEPARTMENT:
        return PROGRAM_TO_DEPARTMENT[name]

    for pattern, code in _PARTIAL_PATTERNS:
        if pattern.search(name):
            return code
    return None


def department_short_code(department_name, faculty_name=""):
    """Department code for an account's assigned department, 'UNKNOWN' when unmatched."""
    dept = _lower(department_name)
    if not dept:
        return UNKNOWN_CODE
    fac = _lower(faculty_name).replace("&", "and")

    if "engineering" in fac and "technology" in fac:
        for keywords, code in (
            (("mechanical",), "MECH"),
            (("electronics", "communication"), "ECE"),
            (("electrical", "electronics"), "EEE"),
            (("civil",), "CIVIL"),
            (("computer science",), "CSE"),
            (("biotechnology",), "ENGBIO"),
            (("mathematics",), "ENGMATH"),
            (("physics",), "ENGPHYS"),
            (("chemistry",), "ENGCHEM"),
        ):
            if all(keyword in dept for keyword in keywords):
                return code

    if "medical" in fac and "health" in fac:
        for keywords, code in (
            (("biochemistry",), "BIOCHEM_MED"),
            (("microbiology",), "MICRO_MED"),
            (("occupational",), "OT"),
            (("imaging",), "MIT"),
            (("psychology",), "CP"),
            (("renal", "dialysis"), "RDT"),
            (("anaesthesia", "anesthesia"), "AT"),
        ):
            if _has_any(dept, keywords):
                return code

    if "science" in fac and "humanities" in fac:
        for keyword, code in (
            ("biochemistry", "BIOCHEM_SCI"),
            ("chemistry", "CHEM_SCI"),
            ("biotechnology", "BIO_SCI"),
            ("microbiology", "MICRO_SCI"),
            ("computer science", "CS_SCI"),
            ("mathematics", "MATH_SCI"),
            ("commerce", "COMM"),
            ("physics", "PHYS_SCI"),
            ("tamil", "TAMIL"),
        ):
            if keyword in dept:
                return code

    if ("management" in fac or "business" in fac) and "physical" in dept:
        return "PED"

    for keyword, code in (
        ("biochemistry", "BIOCHEM_SCI"),
        ("mechanical", "MECH"),
        ("civil", "CIVIL"),
        ("commerce", "COMM"),
        ("tamil", "TAMIL"),
        ("occupational", "OT"),
    ):
        if keyword in dept:
            return code

    return department_from_program(department_name, faculty_name) or UNKNOWN_CODE


def faculty_for_department(code):
    return DEPARTMENT_TO_FACULTY.get((code or "").upper())


def forwarding_status(code):
    """Value of `status` once a coordinator sends a scholar to department `code`."""
    faculty = faculty_for_department(code)
    if not faculty:
        return None
    return f"Forwarded to {FACULTY_SHORT_NAMES[faculty]}"


def faculty_forward_status(code):
    return f"FORWARDED_TO_{code}"


def code_from_faculty_status(faculty_status):
    value = str(faculty_status or "")
    if value.upper().startswith("FORWARDED_TO_"):
        return value[len("FORWARDED_TO_"):] or None
    return None


def faculty_status_text(faculty):
    short = faculty_short_name(faculty)
    return f"Forwarded to {short}" if short else None


def validate_for_forwarding(scholar):
    """Return a list of reasons a scholar cannot be sent to a department."""
    if not scholar:
        return ["Scholar data not found"]
    errors = []
    if code_from_faculty_status(scholar.get("faculty_status")):
        errors.append("Already forwarded")
    program = scholar.get("program")
    if not program:
        errors.append("Scholar program information is missing")
    elif not department_from_program(program, scholar.get("faculty")):
        errors.append(
            f'Cannot determine department from program: "{program}" in faculty: "{scholar.get("faculty") or ""}"'
        )
    return errors


def needs_status_sync(scholar):
    """True when the department recorded in faculty_status disagrees with `status`."""
    code = code_from_faculty_status((scholar or {}).get("faculty_status"))
    if not code:
        return False
    expected = forwarding_status(code)
    return bool(expected) and scholar.get("status") != expected


def classify_program_type(value, program=None):
    """Normalise a study-type cell (FT, PTI, PTE, ...) or infer it from the program string."""
    text = _lower(value)
    if text:
        if text == "ft" or _has_any(text, ("- ft ", "- ft-", "full time", "fulltime")):
            return FULL_TIME
        if _has_any(text, ("pte(industry)", "pte (industry)", "industry")):
            return PART_TIME_INDUSTRY
        if text == "pte" or _has_any(text, ("- pte ", "- pte-", "part time external", "external")):
            return PART_TIME_EXTERNAL
        if text == "pti" or _has_any(text, ("- pti ", "- pti-", "part time internal", "internal")):
            return PART_TIME_INTERNAL
        if text == "pt" or "part time" in text:
            return PART_TIME
        return str(value).strip()

    prog = _lower(program)
    if prog:
        if _has_any(prog, ("- ft ", "- ft-", "- ft)", "(ft)", "full time")):
            return FULL_TIME
        is_pte = _has_any(prog, ("- pte ", "- pte-", "- pte(", "- pte)"))
        if is_pte and "industry" in prog:
            return PART_TIME_INDUSTRY
        if is_pte:
            return PART_TIME_EXTERNAL
        if _has_any(prog, ("- pti ", "- pti-", "- pti(", "- pti)")):
            return PART_TIME_INTERNAL
        if "part time" in prog:
            return PART_TIME
    return FULL_TIME


def program_type_category(program_type):
    """Bucket used by reports and supervisor capacity: full_time, internal, external, industry or part_time."""
    text = _lower(program_type)
    if text in ("full time", "ft") or "full time" in text:
        return "full_time"
    if "industry" in text:
        return "industry"
    if "external" in text or text == "pte":
        return "external"
    if "internal" in text or text == "pti":
        return "internal"
    if "part time" in text or text == "pt":
        return "part_time"
    return "full_time"
