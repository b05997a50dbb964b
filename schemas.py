"""Request and response shapes.

Everything on the wire is camelCase (``companyHandle``, ``numEmployees``) via
an alias generator; Python code uses the snake_case field names. Request
models forbid unknown keys, so a stray field is a 400 rather than being
silently dropped, and values of the wrong JSON type are rejected rather than
converted.
"""
from typing import List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictInt,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


class RequestModel(BaseModel):
    # Strict: JSON "50" is not a salary and "yes" is not a boolean
    model_config = ConfigDict(alias_generator=to_camel, extra="forbid", strict=True)

    def to_payload(self) -> dict:
        """Only the fields the caller sent, keyed by their wire (camelCase) names."""
        return self.model_dump(by_alias=True, exclude_unset=True)


class ResponseModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Auth ---
class UserAuth(RequestModel):
    username: str = Field(min_length=1, max_length=25)
    password: str = Field(min_length=1, max_length=20)


class Token(BaseModel):
    token: str


# --- Companies ---
class CompanyNew(RequestModel):
    handle: str = Field(min_length=1, max_length=25)
    name: str = Field(min_length=1)
    description: str = ""
    num_employees: Optional[int] = Field(default=None, ge=0)
    logo_url: Optional[str] = None


class CompanyUpdate(RequestModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    num_employees: Optional[int] = Field(default=None, ge=0)
    logo_url: Optional[str] = None

    @field_validator("name", "description")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value


class CompanyFilter(RequestModel):
    name_like: Optional[str] = Field(default=None, min_length=1)
    min_employees: Optional[StrictInt] = Field(default=None, ge=0)
    max_employees: Optional[StrictInt] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def check_employee_range(self) -> "CompanyFilter":
        if (
            self.min_employees is not None
            and self.max_employees is not None
            and self.min_employees > self.max_employees
        ):
            raise ValueError("minEmployees cannot be greater than maxEmployees")
        return self


class CompanyJob(ResponseModel):
    id: int
    title: str
    salary: Optional[int] = None
    equity: Optional[float] = None


class Company(ResponseModel):
    handle: str
    name: str
    description: str
    num_employees: Optional[int] = None
    logo_url: Optional[str] = None


class CompanyDetail(Company):
    jobs: List[CompanyJob] = []


class CompanyResponse(BaseModel):
    company: Company


class CompanyDetailResponse(BaseModel):
    company: CompanyDetail


class CompanyListResponse(BaseModel):
    companies: List[Company]


# --- Jobs ---
class JobNew(RequestModel):
    title: str = Field(min_length=1)
    salary: Optional[int] = Field(default=None, ge=0)
    equity: Optional[float] = Field(default=None, ge=0, le=1)
    company_handle: str = Field(min_length=1, max_length=25)


class JobUpdate(RequestModel):
    title: Optional[str] = Field(default=None, min_length=1)
    salary: Optional[int] = Field(default=None, ge=0)
    equity: Optional[float] = Field(default=None, ge=0, le=1)

    @field_validator("title")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value


class JobFilter(RequestModel):
    # The route has already coerced query strings, anything left is bad input
    title: Optional[str] = Field(default=None, min_length=1)
    min_salary: Optional[StrictInt] = Field(default=None, ge=0)
    has_equity: Optional[StrictBool] = None


class Job(ResponseModel):
    id: int
    title: str
    salary: Optional[int] = None
    equity: Optional[float] = None
    company_handle: str


class JobResponse(BaseModel):
    job: Job


class JobListResponse(BaseModel):
    jobs: List[Job]


# --- Users ---
class UserRegister(RequestModel):
    username: str = Field(min_length=1, max_length=25)
    password: str = Field(min_length=5, max_length=20)
    first_name: str = Field(min_length=1, max_length=30)
    last_name: str = Field(min_length=1, max_length=30)
    email: str = Field(min_length=6, max_length=60, pattern=r"^[^@\s]+@[^@\s]+$")


class UserNew(UserRegister):
    is_admin: bool = False


class UserUpdate(RequestModel):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=30)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=30)
    password: Optional[str] = Field(default=None, min_length=5, max_length=20)
    email: Optional[str] = Field(
        default=None, min_length=6, max_length=60, pattern=r"^[^@\s]+@[^@\s]+$"
    )

    @field_validator("first_name", "last_name", "password", "email")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value


class User(ResponseModel):
    username: str
    first_name: str
    last_name: str
    email: str
    is_admin: bool


class UserDetail(User):
    jobs: List[int] = []


class UserResponse(BaseModel):
    user: User


class UserDetailResponse(BaseModel):
    user: UserDetail


class UserListResponse(BaseModel):
    users: List[User]


class UserTokenResponse(BaseModel):
    user: User
    token: str
