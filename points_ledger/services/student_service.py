"""
Student service: enrollment records.

Students are referenced by every ledger record. Identity is
supplied by the caller on every request; this service only
answers whether a student exists.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from points_ledger.errors import NotFound, PointsError
from points_ledger.models.student import Student
from points_ledger.schemas.student import StudentCreate


class StudentService:

    def __init__(self, db: Session):
        self.db = db

    def create_student(self, request: StudentCreate) -> Student:
        """Enroll a new student. The caller commits."""
        existing = self.db.execute(
            select(Student).where(Student.email == request.email)
        ).scalar_one_or_none()

        if existing:
            raise PointsError(f"Student with email '{request.email}' already exists")

        student = Student(
            full_name=request.full_name,
            email=request.email,
            group_name=request.group_name,
        )
        self.db.add(student)
        self.db.flush()
        return student

    def get_student(self, student_id: int) -> Student:
        student = self.db.get(Student, student_id)
        if not student:
            raise NotFound(f"Student {student_id} not found")
        return student
