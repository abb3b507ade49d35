from sqlalchemy.orm import relationship
from models import db

class CourseSection(db.Model):
    __tablename__ = "course_sections"

    id = db.Column(db.Integer, primary_key=True)
    course_id = db.Column(db.Integer, db.ForeignKey("courses.id"), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    order = db.Column(db.Integer, nullable=False, default=1)
    module_week = db.Column(db.Integer, nullable=False, default=1)

    course = relationship("Course", back_populates="sections")
    chapters = relationship(
        "SectionChapter",
        back_populates="section",
        order_by="SectionChapter.order",
        cascade="all, delete-orphan",
    )

    @staticmethod
    def get_next_order(course_id):
        last_section = CourseSection.query.filter_by(course_id=course_id).order_by(CourseSection.order.desc()).first()
        return (last_section.order + 1) if last_section else 1

    def __repr__(self):
        return f"<CourseSection {self.title} (Course ID {self.course_id}, week {self.module_week})>"
