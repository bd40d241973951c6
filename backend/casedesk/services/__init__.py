# FILE: backend/casedesk/services/__init__.py
# Import service modules directly, e.g. `from casedesk.services import case_queries`.
