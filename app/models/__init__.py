"""Models package - exports all SQLAlchemy models."""
from app.models.property_group import PropertyGroup
from app.models.property_field import (
    PropertyField, PropertyFieldType, PropertyFieldPatch, PropertyFieldSearchOpts
)
from app.models.property_value import PropertyValue, PropertyValueSearchOpts

__all__ = [
    'PropertyGroup',
    'PropertyField', 'PropertyFieldType', 'PropertyFieldPatch', 'PropertyFieldSearchOpts',
    'PropertyValue', 'PropertyValueSearchOpts',
]
