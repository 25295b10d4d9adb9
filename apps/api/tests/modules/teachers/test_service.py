"""
Unit tests for the teachers service layer.

These tests cover:
- Adding a teacher (token, notification, invitation)
- Regenerating a submission link
- Resolving a link to its teacher
- Signing up through a link
"""

from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from paperly.core.auth import CurrentUser
from paperly.core.config import settings
from paperly.modules.auth.service import AuthResult
from paperly.modules.notifications.models import RecipientType, RelatedType
from paperly.modules.notifications.service import CreatedNotification
from paperly.modules.teachers.exceptions import (
    AlreadyRegisteredError,
    SubmissionAlreadyCompletedError,
    TeacherExistsError,
    TeacherNotFoundError,
)
from paperly.modules.teachers.schemas import TeacherCreate, TeacherSignup
from paperly.modules.teachers.service import (
    add_teacher,
    get_teacher_for_token,
    regenerate_token,
    signup_url,
    signup_via_token,
    submission_url,
)
from paperly.modules.tokens.models import TokenType
from paperly.modules.tokens.service import (
    SUBMISSION_TOKEN_LIFETIME,
    IssuedSubmissionToken,
    TokenRejectedError,
    TokenValidationCode,
    TokenValidationResult,
)
from paperly.modules.users.models import UserRole
from paperly.modules.users.service import EmailExistsError

SERVICE = "paperly.modules.teachers.service"


@pytest.fixture
def admin():
    return CurrentUser(id=uuid4(), email="admin@example.com", role=UserRole.ADMIN, name="Admin")


@pytest.fixture
def teacher_create():
    return TeacherCreate(name=" Asha Rao ", email="Asha@Example.com", phone="+919800000000")


def _valid(teacher_id) -> TokenValidationResult:
    return TokenValidationResult(
        valid=True, token_type=TokenType.SUBMISSION, teacher_id=teacher_id, validation_count=1
    )


def _failed(code: TokenValidationCode) -> TokenValidationResult:
    return TokenValidationResult.failure(TokenType.SUBMISSION, code)


def _created() -> CreatedNotification:
    return CreatedNotification(notification=MagicMock(), event=MagicMock())


class TestUrls:
    def test_urls_use_client_url(self):
        assert submission_url("abc") == f"{settings.client_url}/submit/abc"
        assert signup_url("abc") == f"{settings.client_url}/teacher/signup/abc"


class TestAddTeacher:
    @pytest.mark.asyncio
    async def test_success(self, mock_db, mock_redis, now, admin, teacher_create, teacher):
        with (
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.record_submission_token", AsyncMock()) as mock_record,
            patch(f"{SERVICE}.create_notification", AsyncMock(return_value=_created())) as notify,
            patch(f"{SERVICE}.publish_events", AsyncMock()) as publish,
            patch(f"{SERVICE}.send_teacher_invitation", AsyncMock(return_value=True)) as email,
        ):
            mock_repo.get_by_email = AsyncMock(return_value=None)
            mock_repo.create = AsyncMock(return_value=teacher)

            result, token = await add_teacher(mock_db, mock_redis, admin, teacher_create, now=now)

            assert result is teacher
            assert len(token) == 64
            create_kwargs = mock_repo.create.call_args.kwargs
            assert create_kwargs["email"] == "asha@example.com"
            assert create_kwargs["name"] == "Asha Rao"
            assert create_kwargs["token_expires_at"] == now + SUBMISSION_TOKEN_LIFETIME
            assert create_kwargs["added_by"] == admin.id
            mock_record.assert_called_once_with(mock_db, teacher, token)

            note = notify.call_args.kwargs
            assert note["recipient_id"] == admin.id
            assert note["recipient_type"] == RecipientType.ADMIN
            assert note["title"] == "Teacher Added"
            assert note["related_type"] == RelatedType.TEACHER

            mock_db.commit.assert_called_once()
            publish.assert_called_once()
            assert email.call_args.kwargs["submission_url"].endswith(f"/submit/{token}")

    @pytest.mark.asyncio
    async def test_duplicate_email(self, mock_db, mock_redis, admin, teacher_create, teacher):
        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_by_email = AsyncMock(return_value=teacher)

            with pytest.raises(TeacherExistsError) as exc_info:
                await add_teacher(mock_db, mock_redis, admin, teacher_create)

            assert exc_info.value.status_code == 409
            mock_db.commit.assert_not_called()

    @pytest.mark.asyncio
    async def test_concurrent_duplicate(self, mock_db, mock_redis, admin, teacher_create):
        with (
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.send_teacher_invitation", AsyncMock()) as email,
        ):
            mock_repo.get_by_email = AsyncMock(return_value=None)
            mock_repo.create = AsyncMock(side_effect=IntegrityError("insert", {}, Exception()))

            with pytest.raises(TeacherExistsError):
                await add_teacher(mock_db, mock_redis, admin, teacher_create)

            mock_db.rollback.assert_called_once()
            email.assert_not_called()


class TestRegenerateToken:
    @pytest.mark.asyncio
    async def test_issues_new_link(self, mock_db, mock_redis, teacher):
        issued = IssuedSubmissionToken(teacher=teacher, token="n" * 64, event=MagicMock())
        with (
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.create_submission_token", AsyncMock(return_value=issued)),
            patch(f"{SERVICE}.publish_events", AsyncMock()),
            patch(f"{SERVICE}.send_teacher_invitation", AsyncMock()) as email,
        ):
            mock_repo.get_by_id = AsyncMock(return_value=teacher)

            result, token = await regenerate_token(mock_db, mock_redis, teacher.id)

            assert result is teacher
            assert token == "n" * 64
            mock_db.commit.assert_called_once()
            email.assert_called_once()

    @pytest.mark.asyncio
    async def test_after_submission(self, mock_db, mock_redis, teacher_factory):
        teacher = teacher_factory(has_submitted=True)
        with (
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.create_submission_token", AsyncMock()) as issue,
        ):
            mock_repo.get_by_id = AsyncMock(return_value=teacher)

            with pytest.raises(SubmissionAlreadyCompletedError):
                await regenerate_token(mock_db, mock_redis, teacher.id)

            issue.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_teacher(self, mock_db, mock_redis):
        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=None)

            with pytest.raises(TeacherNotFoundError):
                await regenerate_token(mock_db, mock_redis, uuid4())


class TestGetTeacherForToken:
    @pytest.mark.asyncio
    async def test_valid_link(self, mock_db, teacher):
        with (
            patch(f"{SERVICE}.validate_url_token", AsyncMock(return_value=_valid(teacher.id))),
            patch(f"{SERVICE}.repository") as mock_repo,
        ):
            mock_repo.get_by_id = AsyncMock(return_value=teacher)

            result, found = await get_teacher_for_token(mock_db, "t", "10.0.0.1")

            assert result.valid
            assert found is teacher

    @pytest.mark.asyncio
    async def test_consumed_link_of_submitted_teacher(self, mock_db, teacher_factory):
        teacher = teacher_factory(has_submitted=True)
        verdict = _failed(TokenValidationCode.TOKEN_INVALID)
        with (
            patch(f"{SERVICE}.validate_url_token", AsyncMock(return_value=verdict)),
            patch(f"{SERVICE}.repository") as mock_repo,
        ):
            mock_repo.get_by_token = AsyncMock(return_value=teacher)

            result, found = await get_teacher_for_token(mock_db, teacher.submission_token)

            assert result.error_code == TokenValidationCode.TOKEN_INVALID
            assert found is teacher

    @pytest.mark.asyncio
    async def test_expired_link(self, mock_db):
        verdict = _failed(TokenValidationCode.TOKEN_EXPIRED)
        with (
            patch(f"{SERVICE}.validate_url_token", AsyncMock(return_value=verdict)),
            patch(f"{SERVICE}.repository") as mock_repo,
        ):
            result, found = await get_teacher_for_token(mock_db, "t")

            assert result.error_code == TokenValidationCode.TOKEN_EXPIRED
            assert found is None
            mock_repo.get_by_token.assert_not_called()


class TestSignupViaToken:
    @pytest.fixture
    def signup(self):
        return TeacherSignup(password="s3cret-pass")

    @pytest.mark.asyncio
    async def test_creates_verified_teacher_account(
        self, mock_db, mock_redis, teacher, profile, signup
    ):
        auth = AuthResult(profile=profile, access_token="a", refresh_token="r")
        with (
            patch(f"{SERVICE}.validate_url_token", AsyncMock(return_value=_valid(teacher.id))),
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.UserRepository") as mock_users,
            patch(f"{SERVICE}.hash_password", return_value="hashed"),
            patch(f"{SERVICE}.log_security_event", AsyncMock()),
            patch(f"{SERVICE}.issue_auth_tokens", AsyncMock(return_value=auth)),
            patch(f"{SERVICE}.create_notification", AsyncMock(return_value=_created())) as notify,
            patch(f"{SERVICE}.publish_events", AsyncMock()) as publish,
            patch(f"{SERVICE}.link_submission_tokens", AsyncMock()) as link_tokens,
        ):
            mock_repo.get_by_id = AsyncMock(return_value=teacher)
            mock_users.email_exists = AsyncMock(return_value=False)
            mock_users.create = AsyncMock(return_value=profile)

            result, linked = await signup_via_token(mock_db, mock_redis, "t", signup)

            assert result is auth
            assert linked.profile_id == profile.id
            link_tokens.assert_called_once_with(mock_db, teacher)
            create_kwargs = mock_users.create.call_args.kwargs
            assert create_kwargs["email"] == teacher.email
            assert create_kwargs["full_name"] == teacher.name
            assert create_kwargs["role"] == UserRole.TEACHER
            assert create_kwargs["email_verified"] is True
            assert notify.call_args.kwargs["title"] == "Teacher Registered"
            mock_db.commit.assert_called_once()
            assert len(publish.call_args.args[1]) == 1

    @pytest.mark.asyncio
    async def test_already_registered(self, mock_db, mock_redis, teacher_factory, signup):
        teacher = teacher_factory(profile_id=uuid4())
        with (
            patch(f"{SERVICE}.validate_url_token", AsyncMock(return_value=_valid(teacher.id))),
            patch(f"{SERVICE}.repository") as mock_repo,
        ):
            mock_repo.get_by_id = AsyncMock(return_value=teacher)

            with pytest.raises(AlreadyRegisteredError):
                await signup_via_token(mock_db, mock_redis, "t", signup)

    @pytest.mark.asyncio
    async def test_email_taken(self, mock_db, mock_redis, teacher, signup):
        with (
            patch(f"{SERVICE}.validate_url_token", AsyncMock(return_value=_valid(teacher.id))),
            patch(f"{SERVICE}.repository") as mock_repo,
            patch(f"{SERVICE}.UserRepository") as mock_users,
        ):
            mock_repo.get_by_id = AsyncMock(return_value=teacher)
            mock_users.email_exists = AsyncMock(return_value=True)

            with pytest.raises(EmailExistsError):
                await signup_via_token(mock_db, mock_redis, "t", signup)

    @pytest.mark.asyncio
    async def test_expired_link(self, mock_db, mock_redis, signup):
        verdict = _failed(TokenValidationCode.TOKEN_EXPIRED)
        with patch(f"{SERVICE}.validate_url_token", AsyncMock(return_value=verdict)):
            with pytest.raises(TokenRejectedError) as exc_info:
                await signup_via_token(mock_db, mock_redis, "t", signup)

            assert exc_info.value.error_code == "TOKEN_EXPIRED"
