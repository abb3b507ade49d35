from models import db
from sqlalchemy.orm import relationship

class UserSectionProgress(db.Model):
    __tablename__ = "user_section_progress"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=False, index=True)
    roadmap_course_id = db.Column(db.Integer, db.ForeignKey("roadmap_courses.id"), nullable=False)
    section_id = db.Column(db.Integer, db.ForeignKey("course_sections.id"), nullable=False)
    course_progress_id = db.Column(db.Integer, db.ForeignKey("user_course_progress.id"), nullable=False)
    module_week = db.Column(db.Integer, nullable=False, default=1)
    total_chapters = db.Column(db.Integer, nullable=False, default=0)
    completed_chapters = db.Column(db.Integer, nullable=False, default=0)
    is_unlocked = db.Column(db.Boolean, nullable=False, default=False)
    unlocked_at = db.Column(db.DateTime, nullable=True)
    is_completed = db.Column(db.Boolean, nullable=False, default=False)
    completed_at = db.Column(db.DateTime, nullable=True)

    section = relationship("CourseSection")
    course_progress = relationship("UserCourseProgress", back_populates="sections")
    chapters = relationship("UserChapterProgress", back_populates="section_progress", cascade="all")

    __table_args__ = (
        db.UniqueConstraint("user_id", "roadmap_course_id", "section_id", name="unique_user_section"),
    )

    def __repr__(self):
        return f"<UserSectionProgress user={self.user_id} section={self.section_id} unlocked={self.is_unlocked}>"
