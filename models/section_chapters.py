from models import db
from sqlalchemy.orm import relationship
from sqlalchemy import CheckConstraint

CONTENT_TYPES = ("video", "document", "quiz", "project")


class SectionChapter(db.Model):
    __tablename__ = "section_chapters"

    id = db.Column(db.Integer, primary_key=True)
    section_id = db.Column(db.Integer, db.ForeignKey("course_sections.id"), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    order = db.Column(db.Integer, nullable=False, default=1)
    content_type = db.Column(db.String(20), nullable=False, default="video")
    content_ref_id = db.Column(db.Integer, nullable=True)
    duration = db.Column(db.Integer, nullable=False, default=0)  # seconds

    __table_args__ = (
        CheckConstraint(
            f"content_type IN ({', '.join(repr(t) for t in CONTENT_TYPES)})",
            name="check_chapter_content_type"
        ),
    )

    section = relationship("CourseSection", back_populates="chapters")

    @staticmethod
    def get_next_order(section_id):
        last_chapter = SectionChapter.query.filter_by(section_id=section_id).order_by(SectionChapter.order.desc()).first()
        return (last_chapter.order + 1) if last_chapter else 1

    def __repr__(self):
        return f"<SectionChapter {self.title} ({self.content_type}, Section ID {self.section_id})>"
