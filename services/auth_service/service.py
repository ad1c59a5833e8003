from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncSession

from shared.errors import AppError, ConflictError, NotFoundError
from shared.security import Actor, create_access_token, normalize_role

from .models import Address, User
from .repository import AddressRepository, UserRepository
from .schemas import AddressCreate, TokenResponse, UserCreate, UserLogin

_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class InvalidCredentials(AppError):
    status_code = 401
    code = "INVALID_CREDENTIALS"
    message = "Incorrect email or password"


class AccountDisabled(AppError):
    status_code = 403
    code = "ACCOUNT_DISABLED"
    message = "Account is disabled"


class AuthService:

    @staticmethod
    def _hash_password(password: str) -> str:
        return _pwd_context.hash(password)

    @staticmethod
    def _verify_password(plain: str, hashed: str) -> bool:
        return _pwd_context.verify(plain, hashed)

    @staticmethod
    async def register(db: AsyncSession, data: UserCreate) -> User:
        existing = await UserRepository.get_by_email(db, data.email)
        if existing:
            raise ConflictError("Email already registered")
        user = User(
            email=data.email,
            hashed_password=AuthService._hash_password(data.password),
            full_name=data.full_name,
            phone=data.phone,
            user_type=normalize_role(data.user_type),
        )
        return await UserRepository.create(db, user)

    @staticmethod
    async def login(db: AsyncSession, data: UserLogin) -> TokenResponse:
        user = await UserRepository.get_by_email(db, data.email)
        if not user or not AuthService._verify_password(data.password, user.hashed_password):
            raise InvalidCredentials()
        if not user.is_active:
            raise AccountDisabled()
        token = create_access_token(data={"sub": str(user.id), "role": user.user_type})
        return TokenResponse(access_token=token)

    @staticmethod
    async def get_user_by_id(db: AsyncSession, user_id) -> User:
        user = await UserRepository.get_by_id(db, user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    @staticmethod
    async def add_address(db: AsyncSession, actor: Actor, data: AddressCreate) -> Address:
        address = Address(
            user_id=actor.id,
            street_address=data.street_address,
            city=data.city,
            state=data.state,
            zip_code=data.zip_code,
        )
        return await AddressRepository.create(db, address)

    @staticmethod
    async def list_addresses(db: AsyncSession, actor: Actor) -> list[Address]:
        return await AddressRepository.list_for_user(db, actor.id)
