from uuid import UUID

from pydantic import BaseModel, ConfigDict


class ProfileSummary(BaseModel):
    """Display payload attached to requests, buddies and conversations."""

    id: UUID
    name: str
    location: str | None = None
    sports: list[str] = []
    avatar_url: str | None = None

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_user(cls, user) -> "ProfileSummary":
        return cls(
            id=user.id,
            name=user.display_name,
            location=user.location,
            sports=list(user.favorite_sports or []),
            avatar_url=user.profile_image_url,
        )
