"""Property Field model - a named, typed attribute definition within a group."""
import enum
from dataclasses import dataclass, fields as dataclass_fields
from typing import Any, Dict, Optional

from sqlalchemy import Column, String, BigInteger, ForeignKey, JSON, Index
from sqlalchemy.orm import validates
from app.database import Base
from app.exceptions import ValidationError
from app.utils.ids import new_id, is_valid_id, get_millis


class PropertyFieldType(str, enum.Enum):
    """Closed set of property field types."""
    TEXT = "text"
    SELECT = "select"
    MULTISELECT = "multiselect"
    DATE = "date"
    PERSON = "person"
    MULTIPERSON = "multiperson"

    @classmethod
    def values(cls):
        return {member.value for member in cls}


def _type_value(value):
    if isinstance(value, PropertyFieldType):
        return value.value
    return value


class PropertyField(Base):
    """
    Property Field.

    delete_at == 0 means active; any other value is the soft-delete
    timestamp in epoch milliseconds.
    """

    __tablename__ = 'property_field'
    __table_args__ = (
        Index('idx_property_field_group_active', 'group_id', 'delete_at'),
        Index('idx_property_field_target', 'target_type', 'target_id'),
    )

    id = Column(String(26), primary_key=True)
    group_id = Column(String(26), ForeignKey('property_group.id'), nullable=False)
    name = Column(String(255), nullable=False)
    type = Column(String(32), nullable=False)
    attrs = Column(JSON, nullable=True)
    target_id = Column(String(255), nullable=False, default='')
    target_type = Column(String(255), nullable=False, default='')
    create_at = Column(BigInteger, nullable=False, default=0)
    update_at = Column(BigInteger, nullable=False, default=0)
    delete_at = Column(BigInteger, nullable=False, default=0)

    @validates('type')
    def _coerce_type(self, key, value):
        return _type_value(value)

    @property
    def is_deleted(self):
        return bool(self.delete_at)

    def pre_save(self):
        """Assign id and timestamps when absent."""
        if not self.id:
            self.id = new_id()

        if not self.create_at:
            self.create_at = get_millis()
        self.update_at = self.create_at

        if self.delete_at is None:
            self.delete_at = 0
        if self.target_id is None:
            self.target_id = ''
        if self.target_type is None:
            self.target_type = ''

    def is_valid(self):
        """Raise ValidationError naming the first invalid attribute."""
        if not is_valid_id(self.id):
            raise ValidationError(
                f"Invalid property field id: {self.id!r}",
                'model.property_field.is_valid.id.app_error'
            )

        if not is_valid_id(self.group_id):
            raise ValidationError(
                f"Invalid group id for property field {self.id}",
                'model.property_field.is_valid.group_id.app_error'
            )

        if not isinstance(self.name, str) or not self.name:
            raise ValidationError(
                f"Property field {self.id} requires a name",
                'model.property_field.is_valid.name.app_error'
            )

        if not isinstance(self.type, str) or self.type not in PropertyFieldType.values():
            raise ValidationError(
                f"Invalid type {self.type!r} for property field {self.id}",
                'model.property_field.is_valid.type.app_error'
            )

        if self.attrs is not None and not isinstance(self.attrs, dict):
            raise ValidationError(
                f"Attrs of property field {self.id} must be a mapping",
                'model.property_field.is_valid.attrs.app_error'
            )

        if not isinstance(self.target_id, str) or not isinstance(self.target_type, str):
            raise ValidationError(
                f"Invalid target for property field {self.id}",
                'model.property_field.is_valid.target.app_error'
            )

        if not self.create_at:
            raise ValidationError(
                f"Property field {self.id} requires create_at",
                'model.property_field.is_valid.create_at.app_error'
            )

        if not self.update_at or self.update_at < self.create_at:
            raise ValidationError(
                f"Property field {self.id} has an invalid update_at",
                'model.property_field.is_valid.update_at.app_error'
            )

    def patch(self, patch: 'PropertyFieldPatch'):
        """Apply the attributes present (not None) in ``patch``."""
        if patch.name is not None:
            self.name = patch.name

        if patch.type is not None:
            self.type = patch.type

        if patch.attrs is not None:
            self.attrs = dict(patch.attrs) if isinstance(patch.attrs, dict) else patch.attrs

        if patch.target_id is not None:
            self.target_id = patch.target_id

        if patch.target_type is not None:
            self.target_type = patch.target_type

    def to_dict(self):
        return {
            'id': self.id,
            'group_id': self.group_id,
            'name': self.name,
            'type': self.type,
            'attrs': self.attrs or {},
            'target_id': self.target_id,
            'target_type': self.target_type,
            'create_at': self.create_at,
            'update_at': self.update_at,
            'delete_at': self.delete_at,
        }

    def __repr__(self):
        return f"<PropertyField(id='{self.id}', group_id='{self.group_id}', name='{self.name}')>"


@dataclass
class PropertyFieldPatch:
    """Partial update for a property field. None means "leave unchanged"."""
    name: Optional[str] = None
    type: Optional[str] = None
    attrs: Optional[Dict[str, Any]] = None
    target_id: Optional[str] = None
    target_type: Optional[str] = None

    def __post_init__(self):
        self.type = _type_value(self.type)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PropertyFieldPatch':
        """Build a patch from a request payload, ignoring unknown keys."""
        if not isinstance(data, dict):
            raise ValidationError("Patch payload must be an object", 'model.property_field_patch.invalid.app_error')
        known = {f.name for f in dataclass_fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in dataclass_fields(self))


@dataclass
class PropertyFieldSearchOpts:
    """Filters for property field searches."""
    group_id: str = ''
    target_type: str = ''
    target_id: str = ''
    include_deleted: bool = False
    page: int = 0
    per_page: int = 0
