from sqlalchemy import Boolean, CheckConstraint, Column, Float, ForeignKey, Integer, String, Text
from database import Base


class Company(Base):
    __tablename__ = "companies"

    handle = Column(String(25), primary_key=True)
    name = Column(Text, unique=True, nullable=False)
    num_employees = Column(Integer, CheckConstraint("num_employees >= 0"))
    description = Column(Text, nullable=False)
    logo_url = Column(Text)


class User(Base):
    __tablename__ = "users"

    username = Column(String(25), primary_key=True)
    password = Column(Text, nullable=False)  # bcrypt hash
    first_name = Column(Text, nullable=False)
    last_name = Column(Text, nullable=False)
    email = Column(Text, nullable=False, index=True)
    is_admin = Column(Boolean, nullable=False, default=False)


class Job(Base):
    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(Text, nullable=False)
    salary = Column(Integer, CheckConstraint("salary >= 0"))
    equity = Column(Float, CheckConstraint("equity <= 1.0"))
    company_handle = Column(
        String(25), ForeignKey("companies.handle", ondelete="CASCADE"), nullable=False
    )


class Application(Base):
    __tablename__ = "applications"

    username = Column(
        String(25), ForeignKey("users.username", ondelete="CASCADE"), primary_key=True
    )
    job_id = Column(Integer, ForeignKey("jobs.id", ondelete="CASCADE"), primary_key=True)
