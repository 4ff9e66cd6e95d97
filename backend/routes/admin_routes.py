from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from backend.auth.dependencies import TokenClaims, require_role
from backend.core import config
from backend.core.errors import NotFound
from backend.database import get_db
from backend.models.user import ADMIN_ROLE, STUDENT_ROLE
from backend.schemas import StudentResponse
from backend.services import credential_store, otp_ledger

router = APIRouter(tags=['admin'])

require_admin = require_role(ADMIN_ROLE)


def _validate_course(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    if normalized not in config.COURSES:
        raise ValueError('Invalid course.')
    return normalized


class StudentCreateRequest(BaseModel):
    full_name: str
    username: str
    email: str
    password: str
    course: str

    @field_validator('full_name', 'username', 'password')
    @classmethod
    def validate_required(cls, value: str) -> str:
        if not value.strip():
            raise ValueError('This field is required.')
        return value

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if '@' not in normalized:
            raise ValueError('A valid email is required.')
        return normalized

    @field_validator('course')
    @classmethod
    def validate_course(cls, value: str) -> str:
        return _validate_course(value)


class StudentUpdateRequest(BaseModel):
    full_name: str | None = None
    username: str | None = None
    email: str | None = None
    password: str | None = None
    course: str | None = None
    absences: int | None = None
    tests: list[dict] | None = None

    @field_validator('course')
    @classmethod
    def validate_course(cls, value: str | None) -> str | None:
        return _validate_course(value)

    @field_validator('absences')
    @classmethod
    def validate_absences(cls, value: int | None) -> int | None:
        if value is not None and value < 0:
            raise ValueError('Absences cannot be negative.')
        return value


class DashboardResponse(BaseModel):
    admin: TokenClaims
    students: list[StudentResponse]
    courses: list[str]
    total_students: int


class StatsResponse(BaseModel):
    total_users: int
    total_students: int
    total_admins: int
    active_codes: int
    course_distribution: dict[str, int]
    average_absences: float


def _get_student_or_404(db: Session, student_id: str):
    student = credential_store.find_user_by_id(db, student_id)
    if student is None or student.role != STUDENT_ROLE:
        raise NotFound('Student not found.')
    return student


@router.get('/dashboard', response_model=DashboardResponse)
def dashboard(admin: TokenClaims = Depends(require_admin), db: Session = Depends(get_db)):
    students = credential_store.list_users_by_role(db, STUDENT_ROLE)
    return DashboardResponse(
        admin=admin,
        students=[StudentResponse.model_validate(student) for student in students],
        courses=config.COURSES,
        total_students=len(students),
    )


@router.get('/students', response_model=list[StudentResponse])
def list_students(_: TokenClaims = Depends(require_admin), db: Session = Depends(get_db)):
    return credential_store.list_users_by_role(db, STUDENT_ROLE)


@router.post('/students', response_model=StudentResponse, status_code=status.HTTP_201_CREATED)
def create_student(
    data: StudentCreateRequest,
    _: TokenClaims = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return credential_store.create_user(
        db,
        username=data.username,
        email=data.email,
        password=data.password,
        role=STUDENT_ROLE,
        full_name=data.full_name.strip(),
        course=data.course,
    )


@router.get('/students/{student_id}', response_model=StudentResponse)
def get_student(student_id: str, _: TokenClaims = Depends(require_admin), db: Session = Depends(get_db)):
    return _get_student_or_404(db, student_id)


@router.put('/students/{student_id}', response_model=StudentResponse)
def update_student(
    student_id: str,
    data: StudentUpdateRequest,
    _: TokenClaims = Depends(require_admin),
    db: Session = Depends(get_db),
):
    _get_student_or_404(db, student_id)
    return credential_store.update_user(db, student_id, data.model_dump(exclude_unset=True))


@router.delete('/students/{student_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_student(student_id: str, _: TokenClaims = Depends(require_admin), db: Session = Depends(get_db)):
    _get_student_or_404(db, student_id)
    credential_store.delete_user(db, student_id)


@router.get('/courses/{course_name}', response_model=list[StudentResponse])
def list_course_students(course_name: str, _: TokenClaims = Depends(require_admin), db: Session = Depends(get_db)):
    if course_name not in config.COURSES:
        raise NotFound('Course not found.')
    return credential_store.list_students_by_course(db, course_name)


@router.get('/stats', response_model=StatsResponse)
def stats(_: TokenClaims = Depends(require_admin), db: Session = Depends(get_db)):
    students = credential_store.list_users_by_role(db, STUDENT_ROLE)

    course_distribution: dict[str, int] = {}
    for student in students:
        if student.course:
            course_distribution[student.course] = course_distribution.get(student.course, 0) + 1

    total_absences = sum(student.absences or 0 for student in students)
    average_absences = round(total_absences / len(students), 2) if students else 0.0

    return StatsResponse(
        total_users=credential_store.count_users(db),
        total_students=len(students),
        total_admins=credential_store.count_users(db, ADMIN_ROLE),
        active_codes=otp_ledger.count_live_codes(db),
        course_distribution=course_distribution,
        average_absences=average_absences,
    )
