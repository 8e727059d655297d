"""
tms/orm/course.py
Course and CourseSection models

A course is an ordered list of sections. Sections are the subunits a
learner completes; progress is counted over them.
"""
from sqlalchemy import Column, Integer, String, Text, ForeignKey, Index
from sqlalchemy.orm import relationship
from tms.orm.base import BaseModel


class Course(BaseModel):
    """
    Authored course.

    Fields:
    - course_code: Short human code (unique, optional)
    - title / description / category
    - estimated_duration: Minutes, informational only
    """
    __tablename__ = "courses"

    course_code = Column(String(50), nullable=True, unique=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True)
    estimated_duration = Column(Integer, nullable=True)

    sections = relationship(
        "CourseSection",
        back_populates="course",
        cascade="all, delete-orphan",
        order_by="CourseSection.order_index",
        lazy="selectin"
    )

    def __repr__(self):
        return f"<Course(id={self.id}, title='{self.title}')>"

    def to_dict(self, include_sections: bool = False):
        data = {
            "id": self.id,
            "course_code": self.course_code,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "estimated_duration": self.estimated_duration,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_sections:
            data["sections"] = [s.to_dict() for s in self.sections]
        return data


class CourseSection(BaseModel):
    """One subunit of a course, ordered by order_index (1-based)."""
    __tablename__ = "course_sections"

    course_id = Column(
        String(36),
        ForeignKey("courses.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=True)
    video_url = Column(String(500), nullable=True)
    order_index = Column(Integer, nullable=False)
    duration = Column(Integer, nullable=True, comment="Minutes")

    course = relationship("Course", back_populates="sections")

    __table_args__ = (
        Index("ix_course_section_order", "course_id", "order_index"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "course_id": self.course_id,
            "title": self.title,
            "content": self.content,
            "video_url": self.video_url,
            "order_index": self.order_index,
            "duration": self.duration,
        }
