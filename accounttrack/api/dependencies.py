"""
System dependency for the HTTP layer
"""

from typing import Optional

from ..system import AccountTrackSystem


# Global system instance, created on first request
_system: Optional[AccountTrackSystem] = None


def get_system() -> AccountTrackSystem:
    global _system
    if _system is None:
        _system = AccountTrackSystem()
    return _system
