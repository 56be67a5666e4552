"""Property Value model - a field's data bound to one target entity."""
from dataclasses import dataclass

from sqlalchemy import Column, String, BigInteger, ForeignKey, JSON, Index, text
from app.database import Base
from app.exceptions import ValidationError
from app.utils.ids import new_id, is_valid_id, get_millis


class PropertyValue(Base):
    """
    Property Value.

    At most one active value exists per (group, target, field); deleted
    rows keep their delete_at stamp and stay out of that constraint.
    """

    __tablename__ = 'property_value'
    __table_args__ = (
        Index(
            'idx_property_value_unique_active',
            'group_id', 'target_id', 'field_id',
            unique=True,
            postgresql_where=text('delete_at = 0'),
            sqlite_where=text('delete_at = 0'),
        ),
        Index('idx_property_value_field', 'field_id', 'delete_at'),
        Index('idx_property_value_target', 'target_type', 'target_id'),
    )

    id = Column(String(26), primary_key=True)
    target_id = Column(String(255), nullable=False)
    target_type = Column(String(255), nullable=False)
    group_id = Column(String(26), ForeignKey('property_group.id'), nullable=False)
    field_id = Column(String(26), ForeignKey('property_field.id'), nullable=False)
    value = Column(JSON, nullable=True)  # opaque payload, interpreted by the feature
    create_at = Column(BigInteger, nullable=False, default=0)
    update_at = Column(BigInteger, nullable=False, default=0)
    delete_at = Column(BigInteger, nullable=False, default=0)

    @property
    def is_deleted(self):
        return bool(self.delete_at)

    def pre_save(self):
        if not self.id:
            self.id = new_id()

        if not self.create_at:
            self.create_at = get_millis()
        self.update_at = self.create_at

        if self.delete_at is None:
            self.delete_at = 0

    def is_valid(self):
        """Raise ValidationError naming the first invalid attribute."""
        if not is_valid_id(self.id):
            raise ValidationError(
                f"Invalid property value id: {self.id!r}",
                'model.property_value.is_valid.id.app_error'
            )

        if not self.target_id:
            raise ValidationError(
                f"Property value {self.id} requires a target id",
                'model.property_value.is_valid.target_id.app_error'
            )

        if not self.target_type:
            raise ValidationError(
                f"Property value {self.id} requires a target type",
                'model.property_value.is_valid.target_type.app_error'
            )

        if not is_valid_id(self.group_id):
            raise ValidationError(
                f"Invalid group id for property value {self.id}",
                'model.property_value.is_valid.group_id.app_error'
            )

        if not is_valid_id(self.field_id):
            raise ValidationError(
                f"Invalid field id for property value {self.id}",
                'model.property_value.is_valid.field_id.app_error'
            )

        if not self.create_at:
            raise ValidationError(
                f"Property value {self.id} requires create_at",
                'model.property_value.is_valid.create_at.app_error'
            )

        if not self.update_at or self.update_at < self.create_at:
            raise ValidationError(
                f"Property value {self.id} has an invalid update_at",
                'model.property_value.is_valid.update_at.app_error'
            )

    def to_dict(self):
        return {
            'id': self.id,
            'target_id': self.target_id,
            'target_type': self.target_type,
            'group_id': self.group_id,
            'field_id': self.field_id,
            'value': self.value,
            'create_at': self.create_at,
            'update_at': self.update_at,
            'delete_at': self.delete_at,
        }

    def __repr__(self):
        return f"<PropertyValue(id='{self.id}', field_id='{self.field_id}', target_id='{self.target_id}')>"


@dataclass
class PropertyValueSearchOpts:
    """Filters for property value searches."""
    group_id: str = ''
    field_id: str = ''
    target_id: str = ''
    target_type: str = ''
    include_deleted: bool = False
    page: int = 0
    per_page: int = 0
