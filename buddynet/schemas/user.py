from fastapi_users import schemas


class UserRead(schemas.BaseUser):
    username: str
    first_name: str | None = None
    last_name: str | None = None
    location: str | None = None
    bio: str | None = None
    favorite_sports: list[str] = []
    profile_image_url: str | None = None


class UserCreate(schemas.BaseUserCreate):
    username: str
    first_name: str | None = None
    last_name: str | None = None
    location: str | None = None
    bio: str | None = None
    favorite_sports: list[str] = []
    profile_image_url: str | None = None


class UserUpdate(schemas.BaseUserUpdate):
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    location: str | None = None
    bio: str | None = None
    favorite_sports: list[str] | None = None
    profile_image_url: str | None = None
