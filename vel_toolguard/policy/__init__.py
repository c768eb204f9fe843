"""
Vel Toolguard Policy

File-operation and URL rules scoped to a session.
"""

from vel_toolguard.policy.access import AccessRecord
from vel_toolguard.policy.enforcer import (
    FileOperationPolicy,
    PolicyDecision,
)
