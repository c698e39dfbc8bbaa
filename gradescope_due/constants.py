"""Canonical constants for gradescope-due."""

DEFAULT_BASE_URL = "https://www.gradescope.com"

STORAGE_KEYS = {
    'assignments': 'gs_assignments',
    'courses': 'gs_courses',
    'settings': 'gs_settings',
    'debug': 'gs_debug',
}

# Sentinel term filter meaning "every term"
ALL_TERMS = 'ALL'

DEFAULT_SETTINGS = {
    'window_days': 14,
    'term_filter': ALL_TERMS,
    'show_past': False,
    'show_submitted': False,
}

WINDOW_DAYS_MIN = 1
WINDOW_DAYS_MAX = 365

ACCESS_OK = 'ok'
ACCESS_DENIED = 'denied'

RATE_LIMIT_SECONDS = 0.9
PAGE_TIMEOUT_SECONDS = 20.0
SETTLE_SECONDS = 1.4

SUMMARY_NOTES = "Term is inferred from the dashboard layout near each course card."
