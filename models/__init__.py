from flask_sqlalchemy import SQLAlchemy

# Initialize SQLAlchemy
db = SQLAlchemy()

# Import models
from models.roadmaps import Roadmap, RoadmapCourse
from models.courses import Course
from models.course_sections import CourseSection
from models.section_chapters import SectionChapter, CONTENT_TYPES

from models.user_enrolled_roadmaps import UserEnrolledRoadmap
from models.course_progress import UserCourseProgress
from models.section_progress import UserSectionProgress
from models.chapter_progress import UserChapterProgress
