from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from pushrelay.common.constants import DeviceLimits


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DeviceRegisterRequest(CamelModel):
    device_id: str = Field(..., description="Stable per-install device identifier")
    fcm_token: str = Field(..., description="Firebase Cloud Messaging token")
    user_id: Optional[int] = Field(None, le=DeviceLimits.BIGINT_MAX, description="Owning account")
    game_id: Optional[int] = Field(None, le=DeviceLimits.BIGINT_MAX, description="Owning game/app context")
    platform: Optional[str] = Field(None, description="Device platform, e.g. ios or android")
    app_version: Optional[str] = Field(None, description="Client application version")


class DeviceRemoveRequest(CamelModel):
    device_id: str
    fcm_token: str
    user_id: int = Field(..., le=DeviceLimits.BIGINT_MAX)
    game_id: int = Field(..., le=DeviceLimits.BIGINT_MAX)


class RegisteredDevice(CamelModel):
    device_id: str
    user_id: Optional[int] = None
    fcm_token: str
