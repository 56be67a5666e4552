"""
Custom Profile Attributes (CPA) service.

Feature-scoped facade over the generic PropertyService. The service is
bound to the CPA property group when constructed and never accepts a
caller supplied group, so every read and write stays inside that group.
"""
import logging
from typing import Any, Dict, List

from flask import current_app
from app.database import get_session
from app.exceptions import FieldLimitError, NotFoundError, ValidationError
from app.models import (
    PropertyField, PropertyFieldPatch, PropertyFieldSearchOpts,
    PropertyValue, PropertyValueSearchOpts
)
from app.services.property_service import PropertyService

logger = logging.getLogger(__name__)

CPA_GROUP_NAME = 'custom_profile_attributes'
CPA_FIELD_LIMIT = 20
CPA_TARGET_TYPE_USER = 'user'

FIELD_NOT_FOUND_ERROR_ID = 'custom_profile_attributes.property_field_not_found'
INVALID_FIELD_ERROR_ID = 'custom_profile_attributes.invalid_field'
LIMIT_REACHED_ERROR_ID = 'custom_profile_attributes.limit_reached'
INVALID_VALUE_ERROR_ID = 'custom_profile_attributes.invalid_value'


def _field_not_found(field_id):
    # Same error for absent ids and ids of other groups
    return NotFoundError(f"Custom profile attribute field {field_id} not found", FIELD_NOT_FOUND_ERROR_ID)


def _invalid_field(error: ValidationError):
    return ValidationError(error.message, INVALID_FIELD_ERROR_ID, {'cause': error.error_id})


class CustomProfileAttributesService:
    """Custom profile attribute fields and per-user values for one property group."""

    def __init__(self, property_service: PropertyService, group_id: str, field_limit: int = CPA_FIELD_LIMIT):
        self.property_service = property_service
        self.group_id = group_id
        self.field_limit = field_limit

    def create_cpa_field(self, field: PropertyField) -> PropertyField:
        """
        Create a field in the CPA group.

        The field's group_id is always overridden with the CPA group. The
        active field count is checked atomically with the insert.

        Raises:
            ValidationError: (invalid_field) the field fails validation
            FieldLimitError: (limit_reached) the group already has field_limit active fields
        """
        field.group_id = self.group_id

        try:
            created = self.property_service.create_property_field(field, limit=self.field_limit)
        except FieldLimitError:
            logger.warning(f"[CPA] Field limit of {self.field_limit} reached for group {self.group_id}")
            raise FieldLimitError(self.group_id, self.field_limit, LIMIT_REACHED_ERROR_ID)
        except ValidationError as e:
            raise _invalid_field(e)

        logger.info(f"[CPA] Created field {created.id} ('{created.name}')")
        return created

    def get_cpa_field(self, field_id: str) -> PropertyField:
        """Fetch a CPA field. Fields of other groups are reported as not found."""
        try:
            field = self.property_service.get_property_field(field_id)
        except NotFoundError:
            raise _field_not_found(field_id)

        if field.group_id != self.group_id:
            raise _field_not_found(field_id)

        return field

    def list_cpa_fields(self) -> List[PropertyField]:
        """Active CPA fields, in creation order."""
        opts = PropertyFieldSearchOpts(
            group_id=self.group_id,
            per_page=max(self.field_limit, 1)
        )
        return self.property_service.search_property_fields(opts)

    def patch_cpa_field(self, field_id: str, patch: PropertyFieldPatch) -> PropertyField:
        """Patch name, type and attrs of a CPA field. Target linkage is never patched."""
        self.get_cpa_field(field_id)

        restricted = PropertyFieldPatch(name=patch.name, type=patch.type, attrs=patch.attrs)

        try:
            return self.property_service.patch_property_field(field_id, restricted)
        except ValidationError as e:
            raise _invalid_field(e)

    def delete_cpa_field(self, field_id: str):
        """Soft-delete a CPA field together with all of its values."""
        self.get_cpa_field(field_id)
        self.property_service.delete_property_field(field_id)
        logger.info(f"[CPA] Deleted field {field_id}")

    def list_cpa_values(self, user_id: str) -> List[PropertyValue]:
        """Active CPA values attached to a user."""
        opts = PropertyValueSearchOpts(
            group_id=self.group_id,
            target_type=CPA_TARGET_TYPE_USER,
            target_id=user_id,
            per_page=max(self.field_limit, 1)
        )
        return self.property_service.search_property_values(opts)

    def patch_cpa_value(self, user_id: str, field_id: str, value: Any) -> PropertyValue:
        """Set the user's value for an active CPA field, creating it when missing."""
        field = self.get_cpa_field(field_id)
        if field.delete_at:
            raise _field_not_found(field_id)

        if not user_id:
            raise ValidationError("A user id is required", INVALID_VALUE_ERROR_ID)

        property_value = PropertyValue(
            group_id=self.group_id,
            field_id=field.id,
            target_id=user_id,
            target_type=CPA_TARGET_TYPE_USER,
            value=value
        )

        try:
            return self.property_service.upsert_property_value(property_value)
        except ValidationError as e:
            raise ValidationError(e.message, INVALID_VALUE_ERROR_ID, {'cause': e.error_id})

    def patch_cpa_values(self, user_id: str, values: Dict[str, Any]) -> List[PropertyValue]:
        """Set several values at once; every field is checked before anything is written."""
        for field_id in values:
            field = self.get_cpa_field(field_id)
            if field.delete_at:
                raise _field_not_found(field_id)

        return [self.patch_cpa_value(user_id, field_id, value) for field_id, value in values.items()]


def get_cpa_service(app=None) -> CustomProfileAttributesService:
    """
    Return the app's CPA service, registering the CPA property group on first use.

    The group id is resolved once and fixed for the lifetime of the app.
    """
    app = app or current_app._get_current_object()
    service = app.extensions.get('custom_profile_attributes')
    if service is None:
        property_service = PropertyService.from_app(app, get_session())
        group = property_service.register_property_group(app.config.get('CPA_GROUP_NAME', CPA_GROUP_NAME))
        service = CustomProfileAttributesService(
            property_service,
            group.id,
            app.config.get('CPA_FIELD_LIMIT', CPA_FIELD_LIMIT)
        )
        app.extensions['custom_profile_attributes'] = service
        logger.info(f"[CPA] Bound to property group {group.id} (limit {service.field_limit})")
    return service
