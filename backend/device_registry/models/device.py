from sqlalchemy import Column, Integer, String, Text
from ..db.session import Base

NAME_MAX_LENGTH = 100
DEVICE_TYPE_MAX_LENGTH = 50
# integer columns hold signed 32-bit values
INT_MAX = 2**31 - 1


class Device(Base):
    __tablename__ = "devices"
    id = Column(Integer, primary_key=True)
    node_id = Column(Integer, nullable=False, index=True)
    endpoint_id = Column(Integer, nullable=False)
    # nullable: older databases were created without this column
    device_type = Column(String(DEVICE_TYPE_MAX_LENGTH), nullable=True)
    name = Column(String(NAME_MAX_LENGTH), nullable=False)
    capabilities = Column(Text, nullable=False, default="{}", server_default="{}")

    def __repr__(self) -> str:
        return f"<Device(id={self.id}, node_id={self.node_id}, endpoint_id={self.endpoint_id}, name='{self.name}')>"
