from campus.models.activity_log import ActivityLog  # noqa: F401
from campus.models.class_session import ClassSession  # noqa: F401
from campus.models.course import Course  # noqa: F401
from campus.models.department import Department  # noqa: F401
from campus.models.lecturer import Lecturer  # noqa: F401
from campus.models.relations import CourseAssignment, Enrollment, ExternalIdSequence  # noqa: F401
from campus.models.student import Student  # noqa: F401
from campus.models.user import User, UserRole  # noqa: F401
