"""Data access for companies, jobs and users.

Every operation is parameterized SQL run through ``database.run_query``;
partial updates and filtered searches build their clauses with
``sql_builder``. Rows come back with camelCase column aliases and are
validated into the response models in ``schemas``.
"""
from typing import Any, Mapping

import bcrypt
import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import schemas
from database import run_query
from errors import BadRequestError, NotFoundError, UnauthorizedError
from settings import get_settings
from sql_builder import (
    COMPANY_FILTERS,
    JOB_FILTERS,
    build_filter_clause,
    build_set_clause,
    filter_values,
)

logger = structlog.get_logger(__name__)

COMPANY_COLUMNS = """handle,
       name,
       description,
       num_employees AS "numEmployees",
       logo_url AS "logoUrl\""""

COMPANY_FIELDS = {"numEmployees": "num_employees", "logoUrl": "logo_url"}

JOB_COLUMNS = """id,
       title,
       salary,
       equity,
       company_handle AS "companyHandle\""""

USER_COLUMNS = """username,
       first_name AS "firstName",
       last_name AS "lastName",
       email,
       is_admin AS "isAdmin\""""

USER_FIELDS = {"firstName": "first_name", "lastName": "last_name", "isAdmin": "is_admin"}


def _where(clause: str) -> str:
    # An empty filter clause must not leave a dangling WHERE behind
    return f"WHERE {clause}" if clause else ""


# --- Company CRUD ---
def create_company(db: Session, company: schemas.CompanyNew) -> schemas.Company:
    duplicate = run_query(
        db, "SELECT handle FROM companies WHERE handle = $1", [company.handle]
    ).first()
    if duplicate:
        raise BadRequestError(f"Duplicate company: {company.handle}")

    try:
        row = run_query(
            db,
            f"""INSERT INTO companies (handle, name, description, num_employees, logo_url)
                VALUES ($1, $2, $3, $4, $5)
                RETURNING {COMPANY_COLUMNS}""",
            [
                company.handle,
                company.name,
                company.description,
                company.num_employees,
                company.logo_url,
            ],
        ).mappings().one()
        db.commit()
    except IntegrityError:
        # Unique name collision
        db.rollback()
        raise BadRequestError(f"Duplicate company: {company.name}")

    logger.info("Created company", handle=company.handle)
    return schemas.Company.model_validate(dict(row))


def find_all_companies(db: Session) -> list[schemas.Company]:
    rows = run_query(db, f"SELECT {COMPANY_COLUMNS} FROM companies ORDER BY name").mappings()
    return [schemas.Company.model_validate(dict(row)) for row in rows]


def find_filtered_companies(db: Session, criteria: Mapping[str, Any]) -> list[schemas.Company]:
    """Companies matching ``criteria`` (nameLike, minEmployees, maxEmployees).

    Raises NotFoundError when nothing matches.
    """
    where = build_filter_clause(criteria, COMPANY_FILTERS)
    rows = run_query(
        db,
        f"""SELECT {COMPANY_COLUMNS}
            FROM companies
            {_where(where)}
            ORDER BY name""",
        filter_values(criteria, COMPANY_FILTERS),
    ).mappings().all()

    if not rows:
        raise NotFoundError("No companies matching your filters are found.")
    return [schemas.Company.model_validate(dict(row)) for row in rows]


def get_company(db: Session, handle: str) -> schemas.CompanyDetail:
    row = run_query(
        db, f"SELECT {COMPANY_COLUMNS} FROM companies WHERE handle = $1", [handle]
    ).mappings().first()
    if row is None:
        raise NotFoundError(f"No company: {handle}")

    jobs = run_query(
        db,
        """SELECT id, title, salary, equity
           FROM jobs
           WHERE company_handle = $1
           ORDER BY id""",
        [handle],
    ).mappings()
    return schemas.CompanyDetail.model_validate({**row, "jobs": [dict(job) for job in jobs]})


def update_company(db: Session, handle: str, data: Mapping[str, Any]) -> schemas.Company:
    """Partial update: only the fields present in ``data`` change."""
    set_cols, values = build_set_clause(data, COMPANY_FIELDS)
    handle_idx = f"${len(values) + 1}"

    try:
        row = run_query(
            db,
            f"""UPDATE companies
                SET {set_cols}
                WHERE handle = {handle_idx}
                RETURNING {COMPANY_COLUMNS}""",
            [*values, handle],
        ).mappings().first()
    except IntegrityError:
        # Unique name collision
        db.rollback()
        raise BadRequestError(f"Duplicate company: {data.get('name')}")

    if row is None:
        db.rollback()
        raise NotFoundError(f"No company: {handle}")

    db.commit()
    logger.info("Updated company", handle=handle, fields=list(data))
    return schemas.Company.model_validate(dict(row))


def remove_company(db: Session, handle: str) -> None:
    row = run_query(
        db, "DELETE FROM companies WHERE handle = $1 RETURNING handle", [handle]
    ).first()
    if row is None:
        db.rollback()
        raise NotFoundError(f"No company: {handle}")
    db.commit()
    logger.info("Removed company", handle=handle)


# --- Job CRUD ---
def create_job(db: Session, job: schemas.JobNew) -> schemas.Job:
    """Insert a job for an existing company.

    The existence check gives a descriptive error; the foreign key on
    company_handle covers a company deleted between the check and the insert.
    """
    company = run_query(
        db, "SELECT handle FROM companies WHERE handle = $1", [job.company_handle]
    ).first()
    if company is None:
        raise BadRequestError("Company not found")

    try:
        row = run_query(
            db,
            f"""INSERT INTO jobs (title, salary, equity, company_handle)
                VALUES ($1, $2, $3, $4)
                RETURNING {JOB_COLUMNS}""",
            [job.title, job.salary, job.equity, job.company_handle],
        ).mappings().one()
        db.commit()
    except IntegrityError:
        db.rollback()
        raise BadRequestError("Company not found")

    logger.info("Created job", job_id=row["id"], company_handle=job.company_handle)
    return schemas.Job.model_validate(dict(row))


def find_all_jobs(db: Session) -> list[schemas.Job]:
    rows = run_query(db, f"SELECT {JOB_COLUMNS} FROM jobs ORDER BY id").mappings()
    return [schemas.Job.model_validate(dict(row)) for row in rows]


def find_filtered_jobs(db: Session, criteria: Mapping[str, Any]) -> list[schemas.Job]:
    """Jobs matching ``criteria`` (title, minSalary, hasEquity).

    Title is a case-insensitive partial match. Raises NotFoundError when
    nothing matches.
    """
    where = build_filter_clause(criteria, JOB_FILTERS)
    rows = run_query(
        db,
        f"""SELECT {JOB_COLUMNS}
            FROM jobs
            {_where(where)}
            ORDER BY id""",
        filter_values(criteria, JOB_FILTERS),
    ).mappings().all()

    if not rows:
        raise NotFoundError("No jobs matching your filters are found.")
    return [schemas.Job.model_validate(dict(row)) for row in rows]


def get_job(db: Session, job_id: int) -> schemas.Job:
    row = run_query(db, f"SELECT {JOB_COLUMNS} FROM jobs WHERE id = $1", [job_id]).mappings().first()
    if row is None:
        raise NotFoundError("Job not found")
    return schemas.Job.model_validate(dict(row))


def update_job(db: Session, job_id: int, data: Mapping[str, Any]) -> schemas.Job:
    set_cols, values = build_set_clause(data, {})
    id_idx = f"${len(values) + 1}"

    row = run_query(
        db,
        f"""UPDATE jobs
            SET {set_cols}
            WHERE id = {id_idx}
            RETURNING {JOB_COLUMNS}""",
        [*values, job_id],
    ).mappings().first()
    if row is None:
        db.rollback()
        raise NotFoundError("Job not found")

    db.commit()
    logger.info("Updated job", job_id=job_id, fields=list(data))
    return schemas.Job.model_validate(dict(row))


def remove_job(db: Session, job_id: int) -> None:
    row = run_query(db, "DELETE FROM jobs WHERE id = $1 RETURNING id", [job_id]).first()
    if row is None:
        db.rollback()
        raise NotFoundError("Job not found")
    db.commit()
    logger.info("Removed job", job_id=job_id)


# --- User CRUD ---
def _hash_password(password: str) -> str:
    rounds = get_settings().bcrypt_work_factor
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def authenticate_user(db: Session, username: str, password: str) -> schemas.User:
    """Return the user if the password matches, else raise UnauthorizedError."""
    row = run_query(
        db, f"SELECT {USER_COLUMNS}, password FROM users WHERE username = $1", [username]
    ).mappings().first()

    if row is not None and bcrypt.checkpw(password.encode("utf-8"), row["password"].encode("utf-8")):
        user = dict(row)
        del user["password"]
        return schemas.User.model_validate(user)

    raise UnauthorizedError("Invalid username/password")


def register_user(db: Session, user: schemas.UserRegister, is_admin: bool = False) -> schemas.User:
    duplicate = run_query(
        db, "SELECT username FROM users WHERE username = $1", [user.username]
    ).first()
    if duplicate:
        raise BadRequestError(f"Duplicate username: {user.username}")

    try:
        row = run_query(
            db,
            f"""INSERT INTO users (username, password, first_name, last_name, email, is_admin)
                VALUES ($1, $2, $3, $4, $5, $6)
                RETURNING {USER_COLUMNS}""",
            [
                user.username,
                _hash_password(user.password),
                user.first_name,
                user.last_name,
                user.email,
                is_admin,
            ],
        ).mappings().one()
        db.commit()
    except IntegrityError:
        # Registered concurrently after the check above
        db.rollback()
        raise BadRequestError(f"Duplicate username: {user.username}")

    logger.info("Registered user", username=user.username, is_admin=is_admin)
    return schemas.User.model_validate(dict(row))


def find_all_users(db: Session) -> list[schemas.User]:
    rows = run_query(db, f"SELECT {USER_COLUMNS} FROM users ORDER BY username").mappings()
    return [schemas.User.model_validate(dict(row)) for row in rows]


def get_user(db: Session, username: str) -> schemas.UserDetail:
    """User details plus the ids of the jobs they applied to."""
    row = run_query(
        db, f"SELECT {USER_COLUMNS} FROM users WHERE username = $1", [username]
    ).mappings().first()
    if row is None:
        raise NotFoundError(f"No user: {username}")

    job_ids = run_query(
        db,
        "SELECT job_id FROM applications WHERE username = $1 ORDER BY job_id",
        [username],
    ).scalars()
    return schemas.UserDetail.model_validate({**row, "jobs": list(job_ids)})


def update_user(db: Session, username: str, data: Mapping[str, Any]) -> schemas.User:
    """Partial update; a new password is hashed before it is stored."""
    data = dict(data)
    if data.get("password"):
        data["password"] = _hash_password(data["password"])

    set_cols, values = build_set_clause(data, USER_FIELDS)
    username_idx = f"${len(values) + 1}"

    row = run_query(
        db,
        f"""UPDATE users
            SET {set_cols}
            WHERE username = {username_idx}
            RETURNING {USER_COLUMNS}""",
        [*values, username],
    ).mappings().first()
    if row is None:
        db.rollback()
        raise NotFoundError(f"No user: {username}")

    db.commit()
    logger.info("Updated user", username=username, fields=list(data))
    return schemas.User.model_validate(dict(row))


def remove_user(db: Session, username: str) -> None:
    row = run_query(
        db, "DELETE FROM users WHERE username = $1 RETURNING username", [username]
    ).first()
    if row is None:
        db.rollback()
        raise NotFoundError(f"No user: {username}")
    db.commit()
    logger.info("Removed user", username=username)


def apply_to_job(db: Session, username: str, job_id: int) -> None:
    job = run_query(db, "SELECT id FROM jobs WHERE id = $1", [job_id]).first()
    if job is None:
        raise NotFoundError(f"No job: {job_id}")

    user = run_query(db, "SELECT username FROM users WHERE username = $1", [username]).first()
    if user is None:
        raise NotFoundError(f"No username: {username}")

    try:
        run_query(
            db, "INSERT INTO applications (job_id, username) VALUES ($1, $2)", [job_id, username]
        )
        db.commit()
    except IntegrityError:
        db.rollback()
        raise BadRequestError(f"{username} already applied to job {job_id}")

    logger.info("Recorded application", username=username, job_id=job_id)
