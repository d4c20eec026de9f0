"""Domain services for the scholar admissions portal."""
