"""
Staff surfaces. Each view is the boundary where errors become notifications.
"""

from .check_in_view import CheckInView
from .check_out_view import CheckOutView
from .residents_view import ResidentsView

__all__ = ["CheckInView", "CheckOutView", "ResidentsView"]
