"""Property Group model - namespace owned by one feature."""
from sqlalchemy import Column, String
from app.database import Base
from app.utils.ids import new_id


class PropertyGroup(Base):
    """Property Group (one per feature, looked up by name)."""

    __tablename__ = 'property_group'

    id = Column(String(26), primary_key=True, default=new_id)
    name = Column(String(64), nullable=False, unique=True)  # e.g. "custom_profile_attributes"

    def to_dict(self):
        return {'id': self.id, 'name': self.name}

    def __repr__(self):
        return f"<PropertyGroup(id='{self.id}', name='{self.name}')>"
