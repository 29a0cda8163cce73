from pydantic import BaseModel, ConfigDict


class UserResponse(BaseModel):
    """사용자 응답"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
