"""
Date utility functions
"""
from datetime import date
from typing import Optional


def days_until(target: Optional[date], today: date) -> int:
    """
    Whole days from today to the target date

    Negative once the target has passed, 0 when there is no target.
    """
    if target is None:
        return 0
    return (target - today).days


def days_remaining(valid_until: Optional[date], today: date) -> int:
    """Days left in a validity window, never below zero"""
    return max(0, days_until(valid_until, today))
