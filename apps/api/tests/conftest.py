"""
Shared fixtures: mock sessions and in-memory model instances.
"""

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from paperly.modules.submissions.models import PaymentStatus, Submission, SubmissionStatus
from paperly.modules.teachers.models import Teacher
from paperly.modules.users.models import Profile, UserRole

NOW = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def mock_db():
    """Create a mock database session."""
    db = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.refresh = AsyncMock()
    db.flush = AsyncMock()
    db.execute = AsyncMock()
    db.add = MagicMock()
    return db


@pytest.fixture
def mock_redis():
    """Create a mock Redis client."""
    redis = AsyncMock()
    redis.publish = AsyncMock(return_value=1)
    return redis


def _profile(role: UserRole = UserRole.TEACHER, **overrides) -> Profile:
    fields = {
        "id": uuid4(),
        "email": "teacher@example.com",
        "full_name": "Asha Rao",
        "phone": "+919800000000",
        "role": role,
        "is_active": True,
        "locked_until": None,
        "failed_login_attempts": 0,
        "email_verified": False,
        "phone_verified": False,
        "last_login": None,
        "login_count": 0,
        "created_at": NOW,
        "updated_at": NOW,
    }
    fields.update(overrides)
    return Profile(**fields)


def _teacher(**overrides) -> Teacher:
    fields = {
        "id": uuid4(),
        "name": "Asha Rao",
        "email": "asha@example.com",
        "phone": "+919800000000",
        "profile_id": None,
        "submission_token": "a" * 64,
        "token_expires_at": NOW + timedelta(days=7),
        "has_submitted": False,
        "added_by": uuid4(),
        "created_at": NOW,
        "updated_at": NOW,
    }
    fields.update(overrides)
    return Teacher(**fields)


def _submission(teacher: Teacher | None = None, **overrides) -> Submission:
    teacher = teacher or _teacher(has_submitted=True)
    fields = {
        "id": uuid4(),
        "teacher_id": teacher.id,
        "teacher": teacher,
        "account_number": "123456789012",
        "routing_code": "SBIN0001234",
        "account_holder_name": "Asha Rao",
        "subject": "Mathematics",
        "class_name": "10",
        "board": "CBSE",
        "exam_type": "Final",
        "file_name": "f" * 32 + ".pdf",
        "original_name": "maths.pdf",
        "file_path": "uploads/question-papers/" + "f" * 32 + ".pdf",
        "file_size": 2048,
        "status": SubmissionStatus.PENDING,
        "review_notes": None,
        "reviewed_by": None,
        "reviewed_at": None,
        "payment_status": PaymentStatus.PENDING,
        "payment_amount": None,
        "created_at": NOW,
        "updated_at": NOW,
    }
    fields.update(overrides)
    return Submission(**fields)


@pytest.fixture
def profile():
    return _profile()


@pytest.fixture
def admin_profile():
    return _profile(UserRole.ADMIN, email="admin@example.com", full_name="Admin")


@pytest.fixture
def teacher():
    return _teacher()


@pytest.fixture
def submission():
    return _submission()


@pytest.fixture
def amount():
    return Decimal("500.00")


@pytest.fixture
def profile_factory():
    return _profile


@pytest.fixture
def teacher_factory():
    return _teacher


@pytest.fixture
def submission_factory():
    return _submission
