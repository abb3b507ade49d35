from models import db
from sqlalchemy.orm import relationship

class UserEnrolledRoadmap(db.Model):
    __tablename__ = "user_enrolled_roadmaps"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=False, index=True)
    roadmap_id = db.Column(db.Integer, db.ForeignKey("roadmaps.id"), nullable=False)
    enrolled_at = db.Column(db.DateTime, nullable=False)

    roadmap = relationship("Roadmap")

    __table_args__ = (
        db.UniqueConstraint("user_id", "roadmap_id", name="unique_user_roadmap"),
    )

    def __repr__(self):
        return f"<UserEnrolledRoadmap user={self.user_id} roadmap={self.roadmap_id}>"
