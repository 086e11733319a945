"""Use case layer for the Learning context.

Re-export common use cases for convenient imports in tests.
"""

from .enrollment import EnrollInput, EnrollUseCase, ListAvailableCoursesInput, ListAvailableCoursesUseCase
from .submissions import (
    CourseAssignmentsInput,
    GetAssignmentsForCourseUseCase,
    GetSubmissionDetailsUseCase,
    SubmissionDetailsInput,
    SubmitAssignmentInput,
    SubmitAssignmentUseCase,
)

__all__ = [
    "CourseAssignmentsInput",
    "EnrollInput",
    "EnrollUseCase",
    "GetAssignmentsForCourseUseCase",
    "GetSubmissionDetailsUseCase",
    "ListAvailableCoursesInput",
    "ListAvailableCoursesUseCase",
    "SubmissionDetailsInput",
    "SubmitAssignmentInput",
    "SubmitAssignmentUseCase",
]
