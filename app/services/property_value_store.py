"""Property value store - values bound to (group, field, target)."""
import logging
from typing import List

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from app.exceptions import (
    ConflictError, NotFoundError, PropertyError, StoreError, ValidationError
)
from app.models import PropertyField, PropertyValue, PropertyValueSearchOpts
from app.utils.ids import get_millis, next_millis
from app.utils.pagination import resolve_page, DEFAULT_PER_PAGE, MAX_PER_PAGE

logger = logging.getLogger(__name__)


class PropertyValueStore:
    """CRUD, soft delete and search for property values."""

    def __init__(self, session, default_per_page=DEFAULT_PER_PAGE, max_per_page=MAX_PER_PAGE):
        self.session = session
        self.default_per_page = default_per_page
        self.max_per_page = max_per_page

    def _check_field(self, value: PropertyValue):
        """The owning field must exist, be active and share the value's group."""
        field = self.session.get(PropertyField, value.field_id)
        if not field:
            raise ValidationError(
                f"Property field {value.field_id} does not exist",
                'model.property_value.is_valid.field_id.app_error'
            )
        if field.group_id != value.group_id:
            raise ValidationError(
                f"Property field {field.id} does not belong to group {value.group_id}",
                'model.property_value.is_valid.group_id.app_error'
            )
        if field.delete_at:
            raise ValidationError(
                f"Property field {field.id} is deleted",
                'model.property_value.is_valid.field_deleted.app_error'
            )

    def create(self, value: PropertyValue) -> PropertyValue:
        """
        Validate and persist a new property value.

        Raises:
            ValidationError: missing attribute, unknown/deleted field or group mismatch
            ConflictError: an active value already exists for (group, field, target)
            StoreError: backing store failure
        """
        value.pre_save()
        value.is_valid()

        try:
            self._check_field(value)
            self.session.add(value)
            self.session.commit()
        except PropertyError:
            self.session.rollback()
            raise
        except IntegrityError as e:
            self.session.rollback()
            raise ConflictError(
                f"An active value already exists for field {value.field_id} and target {value.target_id}",
                'app.property_value.create.duplicate.app_error'
            ) from e
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"[PROPERTIES] Failed to create property value for field {value.field_id}: {e}")
            raise StoreError('create_property_value') from e

        return value

    def get(self, value_id: str) -> PropertyValue:
        try:
            value = self.session.get(PropertyValue, value_id)
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError('get_property_value') from e

        if not value:
            raise NotFoundError(
                f"Property value {value_id} not found",
                'app.property_value.get.not_found.app_error'
            )
        return value

    def search(self, opts: PropertyValueSearchOpts) -> List[PropertyValue]:
        """
        Search values, ordered by creation.

        Unless include_deleted is set, values are hidden when either they or
        their owning field carry a delete_at stamp, so an interrupted field
        cascade never leaks values of a deleted field.
        """
        offset, limit = resolve_page(opts.page, opts.per_page, self.default_per_page, self.max_per_page)

        query = self.session.query(PropertyValue)

        if opts.group_id:
            query = query.filter(PropertyValue.group_id == opts.group_id)

        if opts.field_id:
            query = query.filter(PropertyValue.field_id == opts.field_id)

        if opts.target_id:
            query = query.filter(PropertyValue.target_id == opts.target_id)

        if opts.target_type:
            query = query.filter(PropertyValue.target_type == opts.target_type)

        if not opts.include_deleted:
            query = query.join(PropertyField, PropertyField.id == PropertyValue.field_id).filter(
                PropertyValue.delete_at == 0,
                PropertyField.delete_at == 0
            )

        query = query.order_by(PropertyValue.create_at, PropertyValue.id)

        try:
            return query.offset(offset).limit(limit).all()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError('search_property_values') from e

    def _active_value_query(self, value: PropertyValue):
        return self.session.query(PropertyValue).filter(
            PropertyValue.group_id == value.group_id,
            PropertyValue.field_id == value.field_id,
            PropertyValue.target_id == value.target_id,
            PropertyValue.delete_at == 0
        )

    def upsert(self, value: PropertyValue) -> PropertyValue:
        """Replace the payload of the active value for (group, field, target), or create it."""
        try:
            existing = self._active_value_query(value).first()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError('upsert_property_value') from e

        if not existing:
            try:
                return self.create(value)
            except ConflictError:
                # Created concurrently by another writer: update that row instead
                try:
                    existing = self._active_value_query(value).first()
                except SQLAlchemyError as e:
                    self.session.rollback()
                    raise StoreError('upsert_property_value') from e

                if existing is None:
                    raise NotFoundError(
                        f"Property value for field {value.field_id} and target {value.target_id} not found",
                        'app.property_value.upsert.not_found.app_error'
                    )

        try:
            self._check_field(existing)
            existing.value = value.value
            existing.update_at = next_millis(existing.update_at)
            self.session.commit()
        except PropertyError:
            self.session.rollback()
            raise
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError('upsert_property_value') from e

        return existing

    def delete(self, value_id: str):
        """Soft-delete a single value. Deleting an already deleted value is a no-op."""
        value = self.get(value_id)
        if value.delete_at:
            return

        try:
            value.delete_at = get_millis()
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError('delete_property_value') from e

    def delete_for_field(self, field_id: str, delete_at: int = None, commit: bool = True) -> int:
        """
        Soft-delete every active value of a field.

        With commit=False the caller owns the transaction (field cascade).
        Returns the number of values stamped.
        """
        stamp = delete_at or get_millis()
        try:
            count = self.session.query(PropertyValue).filter(
                PropertyValue.field_id == field_id,
                PropertyValue.delete_at == 0
            ).update({PropertyValue.delete_at: stamp}, synchronize_session=False)
            if commit:
                self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError('delete_property_values_for_field') from e
        return count

    def sweep_deleted_fields(self, group_id: str = None) -> int:
        """
        Finish cascades left incomplete: stamp active values whose field is deleted.

        Returns the number of values stamped.
        """
        try:
            query = self.session.query(PropertyField.id, PropertyField.delete_at).join(
                PropertyValue, PropertyValue.field_id == PropertyField.id
            ).filter(
                PropertyField.delete_at != 0,
                PropertyValue.delete_at == 0
            )
            if group_id:
                query = query.filter(PropertyField.group_id == group_id)
            pending = query.distinct().all()

            count = 0
            for field_id, field_delete_at in pending:
                count += self.delete_for_field(field_id, field_delete_at, commit=False)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError('sweep_deleted_fields') from e

        if count:
            logger.warning(f"[PROPERTIES] Reconciled {count} values of {len(pending)} deleted fields")
        return count
