# cubecart/schemas/auth.py
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from ..models import Address, Role, User

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class RegisterIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., max_length=254, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=6, max_length=72)
    phone: Optional[str] = Field(default=None, max_length=40)


class LoginIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: str = Field(..., max_length=254)
    password: str = Field(..., max_length=72)


class ChangePasswordIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    currentPassword: str = Field(..., max_length=72)
    newPassword: str = Field(..., min_length=6, max_length=72)


class ProfileUpdateIn(BaseModel):
    # email and role are not editable here
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=200)
    phone: Optional[str] = Field(default=None, max_length=40)
    street: Optional[str] = Field(default=None, max_length=200)
    city: Optional[str] = Field(default=None, max_length=100)
    state: Optional[str] = Field(default=None, max_length=100)
    zipCode: Optional[str] = Field(default=None, max_length=20)
    country: Optional[str] = Field(default=None, max_length=100)

    def address(self) -> Address:
        return Address(
            street=self.street, city=self.city, state=self.state,
            zip_code=self.zipCode, country=self.country,
        )


class UserOut(BaseModel):
    id: str
    name: str
    email: str
    role: Role
    phone: Optional[str] = None
    address: Optional[Address] = None

    @classmethod
    def from_user(cls, user: User) -> "UserOut":
        return cls(
            id=user.id, name=user.name, email=user.email, role=user.role,
            phone=user.phone, address=user.address,
        )


class AuthOut(BaseModel):
    token: str
    user: UserOut


class MeOut(BaseModel):
    subjectId: str
    email: str
    role: Role
    expiresAt: int
