from models import db
from sqlalchemy.orm import relationship

class UserCourseProgress(db.Model):
    __tablename__ = "user_course_progress"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=False, index=True)
    roadmap_course_id = db.Column(db.Integer, db.ForeignKey("roadmap_courses.id"), nullable=False)
    user_enrolled_roadmap_id = db.Column(db.Integer, db.ForeignKey("user_enrolled_roadmaps.id"), nullable=True)
    total_sections = db.Column(db.Integer, nullable=False, default=0)
    completed_sections = db.Column(db.Integer, nullable=False, default=0)
    progress_percent = db.Column(db.Integer, nullable=False, default=0)
    is_completed = db.Column(db.Boolean, nullable=False, default=False)
    completed_at = db.Column(db.DateTime, nullable=True)
    enrolled_at = db.Column(db.DateTime, nullable=False)

    roadmap_course = relationship("RoadmapCourse")
    sections = relationship("UserSectionProgress", back_populates="course_progress", cascade="all")

    __table_args__ = (
        db.UniqueConstraint("user_id", "roadmap_course_id", name="unique_user_course"),
    )

    def __repr__(self):
        return f"<UserCourseProgress user={self.user_id} course={self.roadmap_course_id} {self.progress_percent}%>"
