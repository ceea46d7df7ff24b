"""Application services for attendance processing and warning expiry."""

from .attendance import AttendanceProcessor
from .expiry import ExpirySweeper

__all__ = ["AttendanceProcessor", "ExpirySweeper"]
