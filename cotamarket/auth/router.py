from typing import List
from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session
from cotamarket.core.database import get_db
from cotamarket.core.config import settings
from cotamarket.core.logger import logger, audit_log
from cotamarket.core.security import (
    get_password_hash,
    verify_password,
    create_access_token,
    mask_sensitive_data,
)
from cotamarket.auth.dependencies import get_current_user
from cotamarket.auth.models import User, Company
from cotamarket.auth.schemas import (
    UserCreate,
    UserLogin,
    CompanyCreate,
    CompanyResponse,
    TokenResponse,
)

router = APIRouter()


def _issue_token(response: Response, user: User) -> TokenResponse:
    """Creates the access token and stores it in an HTTP-only cookie."""
    access_token = create_access_token(data={"sub": user.id, "name": user.name})

    response.set_cookie(
        key="access_token",
        value=f"Bearer {access_token}",
        httponly=True,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        expires=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )

    return TokenResponse(access_token=access_token, user_id=user.id, name=user.name, role=user.role)


@router.post("/register", response_model=TokenResponse, status_code=201)
def register(response: Response, user: UserCreate, db: Session = Depends(get_db)) -> TokenResponse:
    db_user = db.query(User).filter((User.email == user.email) | (User.cpf == user.cpf)).first()
    if db_user:
        raise HTTPException(status_code=400, detail="Email ou CPF já cadastrado")

    new_user = User(
        name=user.name,
        email=user.email,
        cpf=user.cpf,
        hashed_password=get_password_hash(user.password)
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)

    audit_log(
        action="user_registered",
        user=new_user.id,
        resource=f"user_id={new_user.id}",
        details={"cpf": mask_sensitive_data(new_user.cpf)}
    )

    return _issue_token(response, new_user)


@router.post("/login", response_model=TokenResponse)
def login(response: Response, user_in: UserLogin, db: Session = Depends(get_db)) -> TokenResponse:
    user = db.query(User).filter(User.cpf == user_in.cpf).first()
    if not user or not verify_password(user_in.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Credenciais inválidas")

    logger.info(f"User logged in: {user.id}")
    return _issue_token(response, user)


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie("access_token")
    return {"message": "Logged out"}


@router.post("/companies", response_model=CompanyResponse, status_code=201)
def register_company(
    data: CompanyCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
) -> Company:
    """Registers a company (PJ) the current user may buy cotas through."""
    if db.query(Company).filter(Company.cnpj == data.cnpj).first():
        raise HTTPException(status_code=400, detail="CNPJ já cadastrado")

    company = Company(owner_id=current_user.id, legal_name=data.legal_name, cnpj=data.cnpj)
    db.add(company)
    db.commit()
    db.refresh(company)

    logger.info(f"Company registered: id={company.id} owner={current_user.id}")
    return company


@router.get("/companies", response_model=List[CompanyResponse])
def list_companies(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
) -> List[Company]:
    return db.query(Company).filter(Company.owner_id == current_user.id).all()
