"""Foreign-reference checks shared by the write paths.

A dangling reference is a ValidationError on the offending field, not a
NotFoundError: the row being written is what the caller asked about.
"""

from app.core.exceptions import ValidationError
from app.models.course import Course
from app.models.plant import Plant
from app.models.profile import Profile


def require_plant(storage, plant_id):
    plant = storage.find_first(Plant, Plant.id == plant_id)
    if plant is None:
        raise ValidationError("Plant does not exist", field="plant_id")
    return plant


def require_course(storage, course_id):
    course = storage.find_first(Course, Course.id == course_id)
    if course is None:
        raise ValidationError("Course does not exist", field="course_id")
    return course


def require_profile_in_plant(storage, user_id, plant_id):
    """The enrollment/progress plant must agree with the profile's home plant."""
    profile = storage.find_first(Profile, Profile.id == user_id)
    if profile is None:
        raise ValidationError("User does not exist", field="user_id")
    if profile.plant_id != plant_id:
        raise ValidationError("plant_id must match the user's plant", field="plant_id")
    return profile
