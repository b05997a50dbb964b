import re
from typing import Any, Mapping, Type

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session
import structlog

import crud
import models  # noqa: F401  # registers tables on Base.metadata
import schemas
from auth import AuthContext, create_token, require_admin, require_user_or_admin
from database import create_db_and_tables, get_db
from errors import AppError
from observability import init_observability
from request_id_middleware import RequestIdMiddleware
from settings import get_settings


# Initialise observability before creating app
init_observability()
logger = structlog.get_logger(__name__)

# Create DB tables on startup
create_db_and_tables()

app = FastAPI(
    title=get_settings().app_name,
    description="Job board API: companies, jobs and users",
    version="0.1.0",
)

# --- CORS Middleware ---
origins = [
    "http://localhost",
    "http://localhost:3000",
    "http://127.0.0.1",
    "http://127.0.0.1:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestIdMiddleware)


# --- Error handling --- #
def _error_response(status_code: int, message: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"message": message, "status": status_code}},
    )


def _validation_messages(errors: list[dict]) -> list[str]:
    messages = []
    for err in errors:
        loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        messages.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return messages


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return _error_response(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return _error_response(status.HTTP_400_BAD_REQUEST, _validation_messages(exc.errors()))


@app.exception_handler(ValidationError)
async def validation_handler(request: Request, exc: ValidationError):
    return _error_response(status.HTTP_400_BAD_REQUEST, _validation_messages(exc.errors()))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled error", path=request.url.path, exc_info=exc)
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error")


# --- Query string coercion --- #
_INTEGER = re.compile(r"-?[0-9]+")

COMPANY_QUERY_TYPES = {"minEmployees": int, "maxEmployees": int}
JOB_QUERY_TYPES = {"minSalary": int, "hasEquity": bool}


def _coerce(raw: str, kind: type) -> Any:
    """Convert a query string value; values that don't convert are left for validation to reject."""
    if kind is int:
        # Plain ASCII digits only; int() would also take "5_000" and other scripts' digits
        return int(raw) if _INTEGER.fullmatch(raw) else raw
    if kind is bool:
        return {"true": True, "false": False}.get(raw, raw)
    return raw


def parse_filters(
    request: Request, model: Type[schemas.RequestModel], types: Mapping[str, type]
) -> dict:
    """Coerce the query string to typed values, validate it, return the criteria sent."""
    coerced = {
        key: _coerce(raw, types[key]) if key in types else raw
        for key, raw in request.query_params.items()
    }
    return model.model_validate(coerced).to_payload()


# --- Auth Endpoints ---
@app.post("/auth/token", response_model=schemas.Token, tags=["Auth"])
def login_endpoint(credentials: schemas.UserAuth, db: Session = Depends(get_db)):
    """Exchange username/password for a bearer token."""
    user = crud.authenticate_user(db, credentials.username, credentials.password)
    return {"token": create_token(user.username, user.is_admin)}


@app.post(
    "/auth/register",
    response_model=schemas.Token,
    status_code=status.HTTP_201_CREATED,
    tags=["Auth"],
)
def register_endpoint(user: schemas.UserRegister, db: Session = Depends(get_db)):
    """Self sign-up. New users are never admins."""
    new_user = crud.register_user(db, user, is_admin=False)
    return {"token": create_token(new_user.username, new_user.is_admin)}


# --- Company Endpoints ---
@app.post(
    "/companies",
    response_model=schemas.CompanyResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Companies"],
)
def create_company_endpoint(
    company: schemas.CompanyNew,
    _: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"company": crud.create_company(db, company)}


@app.get("/companies", response_model=schemas.CompanyListResponse, tags=["Companies"])
def list_companies_endpoint(request: Request, db: Session = Depends(get_db)):
    """All companies, or those matching nameLike / minEmployees / maxEmployees."""
    if not request.query_params:
        return {"companies": crud.find_all_companies(db)}
    criteria = parse_filters(request, schemas.CompanyFilter, COMPANY_QUERY_TYPES)
    return {"companies": crud.find_filtered_companies(db, criteria)}


@app.get("/companies/{handle}", response_model=schemas.CompanyDetailResponse, tags=["Companies"])
def get_company_endpoint(handle: str, db: Session = Depends(get_db)):
    return {"company": crud.get_company(db, handle)}


@app.patch("/companies/{handle}", response_model=schemas.CompanyResponse, tags=["Companies"])
def update_company_endpoint(
    handle: str,
    update: schemas.CompanyUpdate,
    _: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"company": crud.update_company(db, handle, update.to_payload())}


@app.delete("/companies/{handle}", tags=["Companies"])
def delete_company_endpoint(
    handle: str,
    _: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    crud.remove_company(db, handle)
    return {"deleted": handle}


# --- Job Endpoints ---
@app.post(
    "/jobs",
    response_model=schemas.JobResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Jobs"],
)
def create_job_endpoint(
    job: schemas.JobNew,
    _: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"job": crud.create_job(db, job)}


@app.get("/jobs", response_model=schemas.JobListResponse, tags=["Jobs"])
def list_jobs_endpoint(request: Request, db: Session = Depends(get_db)):
    """All jobs, or those matching title / minSalary / hasEquity."""
    if not request.query_params:
        return {"jobs": crud.find_all_jobs(db)}
    criteria = parse_filters(request, schemas.JobFilter, JOB_QUERY_TYPES)
    return {"jobs": crud.find_filtered_jobs(db, criteria)}


@app.get("/jobs/{job_id}", response_model=schemas.JobResponse, tags=["Jobs"])
def get_job_endpoint(job_id: int, db: Session = Depends(get_db)):
    return {"job": crud.get_job(db, job_id)}


@app.patch("/jobs/{job_id}", response_model=schemas.JobResponse, tags=["Jobs"])
def update_job_endpoint(
    job_id: int,
    update: schemas.JobUpdate,
    _: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"job": crud.update_job(db, job_id, update.to_payload())}


@app.delete("/jobs/{job_id}", tags=["Jobs"])
def delete_job_endpoint(
    job_id: int,
    _: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    crud.remove_job(db, job_id)
    return {"deleted": job_id}


# --- User Endpoints ---
@app.post(
    "/users",
    response_model=schemas.UserTokenResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Users"],
)
def create_user_endpoint(
    user: schemas.UserNew,
    _: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Admin-only user creation; unlike /auth/register this can create admins."""
    new_user = crud.register_user(db, user, is_admin=user.is_admin)
    return {"user": new_user, "token": create_token(new_user.username, new_user.is_admin)}


@app.get("/users", response_model=schemas.UserListResponse, tags=["Users"])
def list_users_endpoint(
    _: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"users": crud.find_all_users(db)}


@app.get("/users/{username}", response_model=schemas.UserDetailResponse, tags=["Users"])
def get_user_endpoint(
    username: str,
    _: AuthContext = Depends(require_user_or_admin),
    db: Session = Depends(get_db),
):
    return {"user": crud.get_user(db, username)}


@app.patch("/users/{username}", response_model=schemas.UserResponse, tags=["Users"])
def update_user_endpoint(
    username: str,
    update: schemas.UserUpdate,
    _: AuthContext = Depends(require_user_or_admin),
    db: Session = Depends(get_db),
):
    return {"user": crud.update_user(db, username, update.to_payload())}


@app.delete("/users/{username}", tags=["Users"])
def delete_user_endpoint(
    username: str,
    _: AuthContext = Depends(require_user_or_admin),
    db: Session = Depends(get_db),
):
    crud.remove_user(db, username)
    return {"deleted": username}


@app.post("/users/{username}/jobs/{job_id}", tags=["Users"])
def apply_to_job_endpoint(
    username: str,
    job_id: int,
    _: AuthContext = Depends(require_user_or_admin),
    db: Session = Depends(get_db),
):
    crud.apply_to_job(db, username, job_id)
    return {"applied": job_id}


# --- Main execution --- (for running with uvicorn)
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
