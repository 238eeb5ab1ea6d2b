"""Token settings schemas"""

from pydantic import BaseModel, Field


class TokenSettingsPayload(BaseModel):
    """Process-wide token lifecycle settings (seconds)"""
    access_token_expiration: int = Field(..., gt=0)
    refresh_token_expiration: int = Field(..., gt=0)
    rotate_on_use: bool


class TokenSettingsUpdateResponse(BaseModel):
    message: str = "Token settings updated"
    settings: TokenSettingsPayload
