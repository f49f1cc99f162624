from slotforge.models.activity_log import ActivityLog  # noqa: F401
from slotforge.models.time_slot import SlotCancellation, TimeSlotTemplate  # noqa: F401
from slotforge.models.tutor import Tutor, TutorUnavailability  # noqa: F401
from slotforge.models.tutor_assignment import (  # noqa: F401
    AssignmentStatus,
    RecurrencePattern,
    TutorAssignment,
)
from slotforge.models.tutoring_session import SessionStatus, TutoringSession  # noqa: F401
