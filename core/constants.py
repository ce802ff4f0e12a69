"""
Core — Constants

Audit action names and pagination defaults shared across apps.

@file core/constants.py
"""

AUDIT_ACTION_CREATE = 'CREATE'
AUDIT_ACTION_UPDATE = 'UPDATE'
AUDIT_ACTION_DEACTIVATE = 'DEACTIVATE'
AUDIT_ACTION_REACTIVATE = 'REACTIVATE'
AUDIT_ACTION_SET_PRIMARY = 'SET_PRIMARY'
AUDIT_ACTION_MOVEMENT = 'MOVEMENT'
AUDIT_ACTION_ACKNOWLEDGE = 'ACKNOWLEDGE'
AUDIT_ACTION_IMPORT = 'IMPORT'

DEFAULT_PAGE_SIZE = 25
MAX_PAGE_SIZE = 200
