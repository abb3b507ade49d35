from models import db
from sqlalchemy.orm import relationship

class UserChapterProgress(db.Model):
    __tablename__ = "user_chapter_progress"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=False, index=True)
    roadmap_course_id = db.Column(db.Integer, db.ForeignKey("roadmap_courses.id"), nullable=False)
    section_id = db.Column(db.Integer, db.ForeignKey("course_sections.id"), nullable=False)
    chapter_id = db.Column(db.Integer, db.ForeignKey("section_chapters.id"), nullable=False)
    section_progress_id = db.Column(db.Integer, db.ForeignKey("user_section_progress.id"), nullable=False)
    content_type = db.Column(db.String(20), nullable=False)
    is_unlocked = db.Column(db.Boolean, nullable=False, default=False)
    unlocked_at = db.Column(db.DateTime, nullable=True)
    is_completed = db.Column(db.Boolean, nullable=False, default=False)
    completed_at = db.Column(db.DateTime, nullable=True)
    watched_duration = db.Column(db.Integer, nullable=False, default=0)
    total_duration = db.Column(db.Integer, nullable=False, default=0)

    chapter = relationship("SectionChapter")
    section = relationship("CourseSection")
    section_progress = relationship("UserSectionProgress", back_populates="chapters")

    __table_args__ = (
        db.UniqueConstraint("user_id", "roadmap_course_id", "chapter_id", name="unique_user_chapter"),
    )

    def __repr__(self):
        return f"<UserChapterProgress user={self.user_id} chapter={self.chapter_id} unlocked={self.is_unlocked}>"
