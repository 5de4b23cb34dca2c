"""Adapters for services the payroll core reads from."""

from hr_payroll.collaborators.base import (
    AttendanceClient,
    DirectoryClient,
    EmployeeRecord,
    EmployeeType,
    ProfileNotFoundError,
    UpstreamUnavailable,
)
from hr_payroll.collaborators.http import HttpAttendanceClient, HttpDirectoryClient
from hr_payroll.collaborators.memory import InMemoryAttendance, InMemoryDirectory

__all__ = [
    "AttendanceClient",
    "DirectoryClient",
    "EmployeeRecord",
    "EmployeeType",
    "HttpAttendanceClient",
    "HttpDirectoryClient",
    "InMemoryAttendance",
    "InMemoryDirectory",
    "ProfileNotFoundError",
    "UpstreamUnavailable",
]
