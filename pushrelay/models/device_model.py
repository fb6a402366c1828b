from sqlalchemy.sql import false, func

from pushrelay.models.base_import import (
    Base,
    Column,
    BigInteger,
    Boolean,
    DateTime,
    Index,
    Text,
)


class Device(Base):
    __tablename__ = "devices"

    device_id = Column(Text, primary_key=True)
    user_id = Column(BigInteger, nullable=True)
    game_id = Column(BigInteger, nullable=True)
    fcm_token = Column(Text, unique=True, nullable=False)
    platform = Column(Text, nullable=True)
    app_version = Column(Text, nullable=True)
    active = Column(Boolean, default=False, server_default=false(), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("devices_user_id_index", "user_id"),
        Index("devices_user_id_active_index", "user_id", "active"),
    )

    def __repr__(self):
        return f"<Device(device_id='{self.device_id}', user_id={self.user_id}, active={self.active})>"
