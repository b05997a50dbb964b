import pytest
from sqlalchemy.orm import Session

import crud
import schemas
from errors import BadRequestError, NotFoundError, UnauthorizedError

pytestmark = pytest.mark.usefixtures("common_data")


# --- Jobs --- #
def test_create_job(db_session: Session):
    job = crud.create_job(
        db_session,
        schemas.JobNew(title="Test", salary=10000, equity=0, companyHandle="c1"),
    )
    assert isinstance(job.id, int)
    assert job.model_dump(by_alias=True, exclude={"id"}) == {
        "title": "Test",
        "salary": 10000,
        "equity": 0,
        "companyHandle": "c1",
    }
    assert crud.get_job(db_session, job.id) == job


def test_create_job_unknown_company(db_session: Session):
    with pytest.raises(BadRequestError, match="Company not found"):
        crud.create_job(
            db_session,
            schemas.JobNew(title="Test", salary=10000, equity=0, companyHandle="badHandle"),
        )


def test_create_job_company_removed_before_insert(db_session: Session, monkeypatch):
    real_run_query = crud.run_query

    def company_always_exists(db, sql, values=()):
        # The existence check sees the company; the insert then hits the foreign key
        if sql.startswith("SELECT handle FROM companies"):
            return real_run_query(db, "SELECT $1 AS handle", values)
        return real_run_query(db, sql, values)

    monkeypatch.setattr(crud, "run_query", company_always_exists)
    with pytest.raises(BadRequestError, match="Company not found"):
        crud.create_job(db_session, schemas.JobNew(title="x", companyHandle="ghost"))
    monkeypatch.undo()
    assert [j.title for j in crud.find_all_jobs(db_session)] == ["j1", "j2", "j3"]


def test_find_all_jobs_ordered_by_id(db_session: Session, common_data):
    jobs = crud.find_all_jobs(db_session)
    assert [(j.id, j.title, j.salary, j.equity, j.company_handle) for j in jobs] == [
        (common_data["j1"], "j1", 10000, 0.1, "c1"),
        (common_data["j2"], "j2", 20000, 0, "c1"),
        (common_data["j3"], "j3", 30000, 0.3, "c2"),
    ]


def test_find_filtered_jobs(db_session: Session, common_data):
    jobs = crud.find_filtered_jobs(
        db_session, {"title": "J", "minSalary": 20000, "hasEquity": True}
    )
    assert [j.id for j in jobs] == [common_data["j3"]]


def test_find_filtered_jobs_equity_false_does_not_filter(db_session: Session):
    jobs = crud.find_filtered_jobs(db_session, {"hasEquity": False})
    assert [j.title for j in jobs] == ["j1", "j2", "j3"]


def test_find_filtered_jobs_no_match_is_not_found(db_session: Session):
    # Zero matches is an error here, not an empty list
    with pytest.raises(NotFoundError, match="No jobs matching your filters are found."):
        crud.find_filtered_jobs(
            db_session, {"title": "not-title", "minSalary": 20000, "hasEquity": True}
        )


def test_get_job_not_found(db_session: Session):
    with pytest.raises(NotFoundError):
        crud.get_job(db_session, 0)


def test_update_job(db_session: Session, common_data):
    job = crud.update_job(db_session, common_data["j1"], {"title": "New", "equity": 0.5})
    assert job.title == "New"
    assert job.equity == 0.5
    assert job.salary == 10000
    assert crud.get_job(db_session, common_data["j1"]).title == "New"


def test_update_job_not_found(db_session: Session):
    with pytest.raises(NotFoundError):
        crud.update_job(db_session, 0, {"title": "New"})


def test_update_job_no_data(db_session: Session, common_data):
    with pytest.raises(BadRequestError, match="No data"):
        crud.update_job(db_session, common_data["j1"], {})


def test_remove_job(db_session: Session, common_data):
    crud.remove_job(db_session, common_data["j1"])
    with pytest.raises(NotFoundError):
        crud.get_job(db_session, common_data["j1"])
    # Applications to the job go with it
    assert crud.get_user(db_session, "u1").jobs == []


def test_remove_job_not_found(db_session: Session):
    with pytest.raises(NotFoundError):
        crud.remove_job(db_session, 0)


# --- Companies --- #
def test_create_company_duplicate(db_session: Session):
    with pytest.raises(BadRequestError):
        crud.create_company(
            db_session, schemas.CompanyNew(handle="c1", name="Another", description="d")
        )


def test_find_filtered_companies(db_session: Session):
    companies = crud.find_filtered_companies(db_session, {"nameLike": "c", "minEmployees": 2})
    assert [c.handle for c in companies] == ["c2", "c3"]


def test_find_filtered_companies_no_match(db_session: Session):
    with pytest.raises(NotFoundError):
        crud.find_filtered_companies(db_session, {"minEmployees": 100})


def test_get_company_includes_jobs(db_session: Session, common_data):
    company = crud.get_company(db_session, "c1")
    assert company.num_employees == 1
    assert [(j.id, j.title) for j in company.jobs] == [
        (common_data["j1"], "j1"),
        (common_data["j2"], "j2"),
    ]


def test_update_company_maps_camel_case_fields(db_session: Session):
    company = crud.update_company(
        db_session, "c1", {"name": "New", "numEmployees": 10, "logoUrl": None}
    )
    assert (company.name, company.num_employees, company.logo_url) == ("New", 10, None)


def test_update_company_duplicate_name(db_session: Session):
    with pytest.raises(BadRequestError, match="Duplicate company: C2"):
        crud.update_company(db_session, "c1", {"name": "C2"})
    assert crud.get_company(db_session, "c1").name == "C1"


def test_remove_company_cascades_to_jobs(db_session: Session):
    crud.remove_company(db_session, "c1")
    with pytest.raises(NotFoundError):
        crud.get_company(db_session, "c1")
    assert [j.title for j in crud.find_all_jobs(db_session)] == ["j3"]


# --- Users --- #
def test_authenticate_user(db_session: Session):
    user = crud.authenticate_user(db_session, "u1", "password-u1")
    assert user.username == "u1"
    assert user.is_admin is False


@pytest.mark.parametrize("username,password", [("u1", "wrong"), ("nope", "password-u1")])
def test_authenticate_user_rejects(db_session: Session, username, password):
    with pytest.raises(UnauthorizedError, match="Invalid username/password"):
        crud.authenticate_user(db_session, username, password)


def test_register_duplicate_user(db_session: Session):
    with pytest.raises(BadRequestError):
        crud.register_user(
            db_session,
            schemas.UserRegister(
                username="u1", password="password", firstName="F", lastName="L", email="u1@user.com"
            ),
        )


def test_register_user_concurrent_duplicate(db_session: Session, monkeypatch):
    real_run_query = crud.run_query

    def username_looks_free(db, sql, values=()):
        # Another request registers the name between the check and the insert
        if sql.startswith("SELECT username FROM users"):
            return real_run_query(db, "SELECT username FROM users WHERE username = $1 AND 0 = 1", values)
        return real_run_query(db, sql, values)

    monkeypatch.setattr(crud, "run_query", username_looks_free)
    with pytest.raises(BadRequestError, match="Duplicate username: u1"):
        crud.register_user(
            db_session,
            schemas.UserRegister(
                username="u1", password="password", firstName="F", lastName="L", email="u1.com"
            ),
        )


def test_stored_password_is_hashed(db_session: Session):
    from database import run_query

    stored = run_query(db_session, "SELECT password FROM users WHERE username = $1", ["u1"]).scalar()
    assert stored.startswith("$2b$")


def test_get_user_lists_applications(db_session: Session, common_data):
    user = crud.get_user(db_session, "u1")
    assert user.jobs == [common_data["j1"]]
    assert crud.get_user(db_session, "u2").jobs == []


def test_update_user_rehashes_password(db_session: Session):
    user = crud.update_user(db_session, "u1", {"firstName": "New", "password": "new-password"})
    assert user.first_name == "New"
    assert crud.authenticate_user(db_session, "u1", "new-password").username == "u1"


def test_remove_user_not_found(db_session: Session):
    with pytest.raises(NotFoundError):
        crud.remove_user(db_session, "nope")


def test_apply_to_job(db_session: Session, common_data):
    crud.apply_to_job(db_session, "u2", common_data["j3"])
    assert crud.get_user(db_session, "u2").jobs == [common_data["j3"]]


def test_apply_to_job_twice(db_session: Session, common_data):
    with pytest.raises(BadRequestError):
        crud.apply_to_job(db_session, "u1", common_data["j1"])


def test_apply_to_unknown_job_or_user(db_session: Session, common_data):
    with pytest.raises(NotFoundError):
        crud.apply_to_job(db_session, "u1", 0)
    with pytest.raises(NotFoundError):
        crud.apply_to_job(db_session, "nope", common_data["j1"])
