from models import db
from sqlalchemy.orm import relationship

class Roadmap(db.Model):
    __tablename__ = "roadmaps"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)

    courses = relationship(
        "RoadmapCourse",
        back_populates="roadmap",
        order_by="RoadmapCourse.order",
        foreign_keys="RoadmapCourse.roadmap_id",
    )

    def __repr__(self):
        return f"<Roadmap {self.title}>"


class RoadmapCourse(db.Model):
    """A course's slot inside a roadmap (the course mapping)."""
    __tablename__ = "roadmap_courses"

    id = db.Column(db.Integer, primary_key=True)
    roadmap_id = db.Column(db.Integer, db.ForeignKey("roadmaps.id"), nullable=False)
    course_id = db.Column(db.Integer, db.ForeignKey("courses.id"), nullable=False)
    order = db.Column(db.Integer, nullable=False, default=1)
    is_mandatory = db.Column(db.Boolean, default=True, nullable=False)
    weekly_unlock = db.Column(db.Boolean, default=False, nullable=False)
    prerequisite_course_mapping_id = db.Column(db.Integer, db.ForeignKey("roadmap_courses.id"), nullable=True)

    roadmap = relationship("Roadmap", back_populates="courses", foreign_keys=[roadmap_id])
    course = relationship("Course")
    prerequisite = relationship("RoadmapCourse", remote_side=[id])

    __table_args__ = (
        db.UniqueConstraint("roadmap_id", "course_id", name="uq_roadmap_course"),
    )

    def __repr__(self):
        return f"<RoadmapCourse roadmap={self.roadmap_id} course={self.course_id} order={self.order}>"
