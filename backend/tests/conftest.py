import os

# Settings are read at import time; point them at test values before app imports
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_ISSUER"] = "https://auth.test/"
os.environ["JWKS_URL"] = "https://auth.test/.well-known/jwks.json"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from app.auth.dependencies import get_token_validator  # noqa: E402
from app.database import get_session, init_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models.group import Group, GroupJoinPolicy, GroupMembership, GroupRole  # noqa: E402
from app.models.user import User  # noqa: E402
from tests.jwt_keys import JWKSServer, SigningKey, claims_for, validator_factory  # noqa: E402

TEST_DATABASE_URL = "sqlite:///:memory:"

# ============================================================================
# Test Database Setup with StaticPool
# ============================================================================
# 1. Use sqlite:///:memory: with StaticPool so ALL sessions share same DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. Tables are dropped and recreated per test
# 4. App dependencies overridden to use test_engine (see client_fixture)
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


def override_get_session():
    """Override session to use test engine"""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Provide a test database session on a fresh schema"""
    SQLModel.metadata.drop_all(test_engine)
    init_db(test_engine)

    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="make_user")
def make_user_fixture(session: Session):
    """Factory creating users directly in the database"""

    def make(user_id: str, username: str = None, display_name: str = None) -> User:
        user = User(
            id=user_id,
            email=f"{user_id}@example.com",
            username=username or user_id.replace("-", "_"),
            display_name=display_name or user_id.title(),
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return make


@pytest.fixture(name="make_group")
def make_group_fixture(session: Session):
    """Factory creating a group whose owner is an ADMIN member"""

    def make(owner: User, name: str = "Rosary Circle", join_policy: GroupJoinPolicy = GroupJoinPolicy.REQUEST) -> Group:
        group = Group(name=name, join_policy=join_policy, created_by=owner.id)
        session.add(group)
        session.flush()
        session.add(GroupMembership(group_id=group.id, user_id=owner.id, role=GroupRole.ADMIN))
        session.commit()
        session.refresh(group)
        return group

    return make


@pytest.fixture(name="add_member")
def add_member_fixture(session: Session):
    def add(group: Group, user: User, role: GroupRole = GroupRole.MEMBER) -> GroupMembership:
        membership = GroupMembership(group_id=group.id, user_id=user.id, role=role)
        session.add(membership)
        session.commit()
        session.refresh(membership)
        return membership

    return add


# ============================================================================
# Auth: real TokenValidator backed by a mock key-set endpoint
# ============================================================================


@pytest.fixture(name="signing_key", scope="session")
def signing_key_fixture() -> SigningKey:
    return SigningKey.rsa("test-key-1")


@pytest.fixture(name="jwks_server")
def jwks_server_fixture(signing_key: SigningKey) -> JWKSServer:
    return JWKSServer([signing_key])


@pytest.fixture(name="token_for")
def token_for_fixture(signing_key: SigningKey):
    """Build a bearer header for a subject, with optional extra claims"""

    def token_for(sub: str, **extra) -> dict:
        return {"Authorization": f"Bearer {signing_key.sign(claims_for(sub=sub, **extra))}"}

    return token_for


@pytest.fixture(name="client")
def client_fixture(session: Session, jwks_server: JWKSServer):
    """Provide a test client with overridden database session and token validator

    Overrides MUST be set BEFORE TestClient() and stay in place for the
    entire duration, so the app never uses its own engine or key-set URL.
    """
    validator = validator_factory(jwks_server)()
    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_token_validator] = lambda: validator

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
    validator.close()
