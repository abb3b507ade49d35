from models import db
from sqlalchemy.orm import relationship

class Course(db.Model):
    __tablename__ = "courses"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)

    sections = relationship(
        "CourseSection",
        back_populates="course",
        order_by="CourseSection.order",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Course {self.title}>"
