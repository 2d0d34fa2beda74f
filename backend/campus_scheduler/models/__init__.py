from campus_scheduler.models.calendar import CalendarException, LunchConfig, TimeSlot  # noqa: F401
from campus_scheduler.models.course import Course, Group  # noqa: F401
from campus_scheduler.models.lesson_type import (  # noqa: F401
    BREAK_CODE,
    CANCELED_CODE,
    RESCHEDULED_CODE,
    LessonType,
)
from campus_scheduler.models.module import (  # noqa: F401
    Module,
    ModuleBuilding,
    ModuleCourse,
    ModuleFiller,
    ModulePlan,
    ModuleRoom,
    ModuleSequenceItem,
    ModuleTopic,
)
from campus_scheduler.models.room import Building, BuildingTravel, Room  # noqa: F401
from campus_scheduler.models.schedule import DraftStatus, ScheduleItem, TeacherDraftItem  # noqa: F401
from campus_scheduler.models.teacher import (  # noqa: F401
    ModuleSupervisor,
    Teacher,
    TeacherCourseLoad,
    TeacherModule,
    TeacherWorkingHour,
)
