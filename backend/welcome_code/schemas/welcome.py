import re

from pydantic import BaseModel, Field, field_validator

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class WelcomeCodeRequest(BaseModel):
    email: str = Field(max_length=320)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: object) -> str:
        if not isinstance(value, str):
            raise ValueError("Please enter a valid email.")
        email = value.strip().lower()
        if not email or not EMAIL_RE.match(email):
            raise ValueError("Please enter a valid email.")
        return email


class ApiMessage(BaseModel):
    ok: bool
    message: str
