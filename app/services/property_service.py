"""
Generic property service.

Composes the group registry and the field/value stores into the single API
used by features. It knows nothing about feature identity; the field
deletion cascade lives in the field store.
"""
from typing import List, Optional

from app.models import (
    PropertyGroup, PropertyField, PropertyFieldPatch, PropertyFieldSearchOpts,
    PropertyValue, PropertyValueSearchOpts
)
from app.services.property_group_registry import PropertyGroupRegistry
from app.services.property_field_store import PropertyFieldStore
from app.services.property_value_store import PropertyValueStore
from app.utils.pagination import DEFAULT_PER_PAGE, MAX_PER_PAGE


class PropertyService:
    """Group, field and value operations over one SQLAlchemy (scoped) session."""

    def __init__(self, session, default_per_page=DEFAULT_PER_PAGE, max_per_page=MAX_PER_PAGE):
        self.session = session
        self.groups = PropertyGroupRegistry(session)
        self.values = PropertyValueStore(session, default_per_page, max_per_page)
        self.fields = PropertyFieldStore(session, self.values, default_per_page, max_per_page)

    @classmethod
    def from_app(cls, app, session):
        """Build a service using the app's pagination settings."""
        return cls(
            session,
            default_per_page=app.config.get('PROPERTY_SEARCH_DEFAULT_PER_PAGE', DEFAULT_PER_PAGE),
            max_per_page=app.config.get('PROPERTY_SEARCH_MAX_PER_PAGE', MAX_PER_PAGE),
        )

    # Groups

    def register_property_group(self, name: str) -> PropertyGroup:
        return self.groups.register(name)

    def get_property_group(self, name: str) -> PropertyGroup:
        return self.groups.get(name)

    # Fields

    def create_property_field(self, field: PropertyField, limit: Optional[int] = None) -> PropertyField:
        return self.fields.create(field, limit=limit)

    def get_property_field(self, field_id: str) -> PropertyField:
        return self.fields.get(field_id)

    def search_property_fields(self, opts: PropertyFieldSearchOpts) -> List[PropertyField]:
        return self.fields.search(opts)

    def count_active_property_fields(self, group_id: str) -> int:
        return self.fields.count_active(group_id)

    def patch_property_field(self, field_id: str, patch: PropertyFieldPatch) -> PropertyField:
        return self.fields.patch(field_id, patch)

    def delete_property_field(self, field_id: str) -> PropertyField:
        return self.fields.delete(field_id)

    # Values

    def create_property_value(self, value: PropertyValue) -> PropertyValue:
        return self.values.create(value)

    def get_property_value(self, value_id: str) -> PropertyValue:
        return self.values.get(value_id)

    def search_property_values(self, opts: PropertyValueSearchOpts) -> List[PropertyValue]:
        return self.values.search(opts)

    def upsert_property_value(self, value: PropertyValue) -> PropertyValue:
        return self.values.upsert(value)

    def delete_property_value(self, value_id: str):
        self.values.delete(value_id)

    # Maintenance

    def reconcile_deleted_fields(self, group_id: Optional[str] = None) -> int:
        """Soft-delete values still active under deleted fields. Returns how many were fixed."""
        return self.values.sweep_deleted_fields(group_id)
