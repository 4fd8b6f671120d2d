import pytest
from sqlalchemy.orm import Session

from conftest import make_user
from roombook.auth.identity import ResolvedIdentity
from roombook.data.user_manager import UserManager
from roombook.errors import AlreadyInState, Conflict, Forbidden, NotFound, ValidationFailed
from roombook.models.user import UserRole
from roombook.schemas.user import UserCreate, UserUpdate


@pytest.fixture
def user_manager(db_session: Session) -> UserManager:
    return UserManager(db=db_session)


def _identity(**overrides) -> ResolvedIdentity:
    values = {
        "provider_user_id": "idp-123",
        "email": "sam.sample@example.com",
        "first_name": "Sam",
        "last_name": "Sample",
        "display_name": "Sam Sample",
    }
    values.update(overrides)
    return ResolvedIdentity(**values)


def test_first_login_creates_active_employee(user_manager):
    user = user_manager.find_or_create_from_identity(_identity())
    assert user.user_id == "USR-SAMPLES-001"
    assert user.role == UserRole.EMPLOYEE.value
    assert user.is_active is True
    assert user.provider_user_id == "idp-123"


def test_repeat_login_finds_same_user(user_manager):
    first = user_manager.find_or_create_from_identity(_identity())
    again = user_manager.find_or_create_from_identity(_identity(email="other@example.com"))
    assert again.user_id == first.user_id


def test_login_links_existing_email(db_session, user_manager, employee_user):
    linked = user_manager.find_or_create_from_identity(
        _identity(provider_user_id="idp-new", email=employee_user.email.upper())
    )
    assert linked.user_id == employee_user.user_id
    assert linked.provider_user_id == "idp-new"


def test_record_login_stamps_time(user_manager, employee_user):
    assert employee_user.last_login is None
    assert user_manager.record_login(employee_user).last_login is not None


def test_admin_creates_users_and_duplicates_conflict(user_manager, admin_user, employee_user):
    payload = UserCreate(
        email="New.Person@Example.com",
        first_name="New",
        last_name="Person",
        provider_user_id="idp-new-person",
        role=UserRole.MANAGER,
    )
    with pytest.raises(Forbidden):
        user_manager.create_user(employee_user, payload)

    created = user_manager.create_user(admin_user, payload)
    assert created.email == "new.person@example.com"
    assert created.role == UserRole.MANAGER.value

    with pytest.raises(Conflict):
        user_manager.create_user(admin_user, payload)


def test_self_update_cannot_touch_role_or_active(user_manager, employee_user):
    updated = user_manager.update_user(
        employee_user, employee_user.user_id, UserUpdate(display_name="Eli E.")
    )
    assert updated.display_name == "Eli E."
    with pytest.raises(Forbidden):
        user_manager.update_user(employee_user, employee_user.user_id, UserUpdate(role=UserRole.ADMIN))
    with pytest.raises(Forbidden):
        user_manager.update_user(employee_user, employee_user.user_id, UserUpdate(is_active=False))


def test_update_user_permissions(user_manager, employee_user, other_employee, manager_user, admin_user):
    with pytest.raises(Forbidden):
        user_manager.update_user(other_employee, employee_user.user_id, UserUpdate(first_name="Hacked"))

    by_manager = user_manager.update_user(manager_user, employee_user.user_id, UserUpdate(first_name="Elias"))
    assert by_manager.first_name == "Elias"

    promoted = user_manager.update_user(admin_user, employee_user.user_id, UserUpdate(role=UserRole.MANAGER))
    assert promoted.role == UserRole.MANAGER.value


def test_update_user_email_must_stay_unique(user_manager, employee_user, other_employee):
    with pytest.raises(Conflict):
        user_manager.update_user(employee_user, employee_user.user_id, UserUpdate(email=other_employee.email))
    with pytest.raises(ValidationFailed):
        user_manager.update_user(employee_user, employee_user.user_id, UserUpdate(email="not-an-email"))


def test_role_changes_are_admin_only(user_manager, employee_user, manager_user, admin_user):
    with pytest.raises(Forbidden):
        user_manager.update_user_role(manager_user, employee_user.user_id, "admin")
    with pytest.raises(ValidationFailed):
        user_manager.update_user_role(admin_user, employee_user.user_id, "overlord")
    assert user_manager.update_user_role(admin_user, employee_user.user_id, "Manager").role == "manager"


def test_activation_lifecycle(user_manager, employee_user, admin_user):
    with pytest.raises(AlreadyInState):
        user_manager.activate_user(admin_user, employee_user.user_id)

    deleted = user_manager.delete_user(admin_user, employee_user.user_id)
    assert deleted.is_active is False
    assert employee_user.user_id not in [u.user_id for u in user_manager.list_active_users()]

    with pytest.raises(AlreadyInState):
        user_manager.deactivate_user(admin_user, employee_user.user_id)
    assert user_manager.activate_user(admin_user, employee_user.user_id).is_active is True


def test_deactivate_self(user_manager, employee_user):
    assert user_manager.deactivate_self(employee_user).is_active is False


def test_lookup_and_search(db_session, user_manager, employee_user):
    make_user(db_session, "Zed", "Zimmer")
    assert user_manager.get_user_by_email(employee_user.email.upper()).user_id == employee_user.user_id
    with pytest.raises(NotFound):
        user_manager.get_user("USR-NOBODYX-001")

    items, total = user_manager.search_users("zimm")
    assert total == 1
    assert items[0].last_name == "Zimmer"

    _, everyone = user_manager.list_users(page=1, limit=1)
    assert everyone == 2
