import os

# Must be set before settings are first read (get_settings is cached)
os.environ.setdefault("BCRYPT_WORK_FACTOR", "4")
os.environ.setdefault("LOG_FORMAT", "console")

import pytest
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

# --- Alembic Imports ---
from alembic.config import Config
from alembic import command
# --- End Alembic Imports ---

# Import app and DB dependency function first
from main import app, get_db

# Import database components needed for setup
from database import Base, build_engine, run_query
from auth import create_token
import crud
import schemas

TEST_DATABASE_URL = "sqlite:///./jobly-test.db"

test_engine = build_engine(TEST_DATABASE_URL)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


def _remove_db_files(db_path: str) -> None:
    # WAL mode leaves -wal/-shm companions next to the main file
    for path in (db_path, f"{db_path}-wal", f"{db_path}-shm"):
        if os.path.exists(path):
            try:
                os.unlink(path)
            except OSError as e:
                print(f"Error removing test database file {path}: {e}")


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create the test database from models and stamp with Alembic head."""
    db_path = TEST_DATABASE_URL.split("///")[-1]
    _remove_db_files(db_path)

    # --- Create schema directly from models --- #
    Base.metadata.create_all(bind=test_engine)

    # --- Stamp the database with the latest Alembic revision --- #
    alembic_cfg = Config("alembic.ini")
    alembic_cfg.set_main_option("sqlalchemy.url", TEST_DATABASE_URL)
    command.stamp(alembic_cfg, "head")

    yield  # Tests run here

    test_engine.dispose()
    _remove_db_files(db_path)


@pytest.fixture(scope="function")
def db_session(setup_test_database):
    """Yields a SQLAlchemy session directly from the test factory."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def override_get_db():
    """Point the app's get_db dependency at the test database for one test."""

    def _override_get_db():
        db = TestSessionLocal()
        try:
            yield db
        finally:
            db.close()

    original = app.dependency_overrides.get(get_db)
    app.dependency_overrides[get_db] = _override_get_db

    yield

    if original:
        app.dependency_overrides[get_db] = original
    else:
        del app.dependency_overrides[get_db]


@pytest.fixture(scope="function")
def test_client(override_get_db):
    """Provides a test client configured with our test database session."""
    return TestClient(app)


# --- Seed data --- #
@pytest.fixture(scope="function")
def common_data(db_session):
    """Reset every table and load three companies, three jobs and three users.

    c1 has j1 (10000, 0.1) and j2 (20000, 0); c2 has j3 (30000, 0.3); c3 has
    no jobs. u1 and u2 are regular users, admin1 is an admin. u1 applied to j1.
    Returns the generated job ids keyed by title.
    """
    for table in ("applications", "jobs", "users", "companies"):
        run_query(db_session, f"DELETE FROM {table}")
    db_session.commit()

    for n in (1, 2, 3):
        crud.create_company(
            db_session,
            schemas.CompanyNew(
                handle=f"c{n}",
                name=f"C{n}",
                description=f"Desc{n}",
                numEmployees=n,
                logoUrl=f"http://c{n}.img",
            ),
        )

    job_ids = {}
    for title, salary, equity, handle in (
        ("j1", 10000, 0.1, "c1"),
        ("j2", 20000, 0, "c1"),
        ("j3", 30000, 0.3, "c2"),
    ):
        job = crud.create_job(
            db_session,
            schemas.JobNew(title=title, salary=salary, equity=equity, companyHandle=handle),
        )
        job_ids[title] = job.id

    for username, is_admin in (("u1", False), ("u2", False), ("admin1", True)):
        crud.register_user(
            db_session,
            schemas.UserRegister(
                username=username,
                password=f"password-{username}",
                firstName=f"{username.upper()}F",
                lastName=f"{username.upper()}L",
                email=f"{username}@user.com",
            ),
            is_admin=is_admin,
        )

    crud.apply_to_job(db_session, "u1", job_ids["j1"])
    return job_ids


@pytest.fixture
def u1_token():
    return create_token("u1", False)


@pytest.fixture
def u2_token():
    return create_token("u2", False)


@pytest.fixture
def admin_token():
    return create_token("admin1", True)
