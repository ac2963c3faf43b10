from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from cotamarket.auth.models import UserRole
import re


class UserCreate(BaseModel):
    name: str = Field(..., min_length=3)
    cpf: str = Field(..., min_length=11)
    email: EmailStr
    password: str = Field(..., min_length=6)

    @field_validator('cpf')
    @classmethod
    def validate_cpf(cls, v: str) -> str:
        digits = re.sub(r'\D', '', v)
        if len(digits) != 11:
            raise ValueError('CPF must have 11 digits')
        return digits


class UserLogin(BaseModel):
    cpf: str
    password: str

    @field_validator('cpf')
    @classmethod
    def validate_cpf(cls, v: str) -> str:
        return re.sub(r'\D', '', v)


class CompanyCreate(BaseModel):
    legal_name: str = Field(..., min_length=2, max_length=200)
    cnpj: str

    @field_validator('cnpj')
    @classmethod
    def validate_cnpj(cls, v: str) -> str:
        digits = re.sub(r'\D', '', v)
        if len(digits) != 14:
            raise ValueError('CNPJ must have 14 digits')
        return digits


class CompanyResponse(BaseModel):
    id: str
    legal_name: str
    cnpj: str

    model_config = ConfigDict(from_attributes=True)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str
    name: str
    role: UserRole
