"""Property field store - field definitions scoped to a property group."""
import logging
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from app.exceptions import (
    ConflictError, FieldLimitError, NotFoundError, PropertyError, StoreError, ValidationError
)
from app.models import PropertyField, PropertyFieldPatch, PropertyFieldSearchOpts, PropertyGroup
from app.utils.ids import get_millis, next_millis
from app.utils.pagination import resolve_page, DEFAULT_PER_PAGE, MAX_PER_PAGE

logger = logging.getLogger(__name__)


class PropertyFieldStore:
    """CRUD, patch, soft delete and search for property fields."""

    def __init__(self, session, value_store, default_per_page=DEFAULT_PER_PAGE, max_per_page=MAX_PER_PAGE):
        self.session = session
        self.value_store = value_store
        self.default_per_page = default_per_page
        self.max_per_page = max_per_page

    def _active_count_query(self, group_id):
        return self.session.query(func.count(PropertyField.id)).filter(
            PropertyField.group_id == group_id,
            PropertyField.delete_at == 0
        )

    def create(self, field: PropertyField, limit: Optional[int] = None) -> PropertyField:
        """
        Validate and persist a new property field.

        When ``limit`` is given, the group row is locked and the active field
        count checked in the same transaction as the insert, so concurrent
        creators in one group cannot jointly exceed the limit. SQLite has no
        row locks; there the transaction starts with ``BEGIN IMMEDIATE`` and
        takes the database write lock before counting.

        Raises:
            ValidationError: invalid attribute or unknown group
            FieldLimitError: the group already has ``limit`` active fields
            ConflictError: the id is already taken
            StoreError: backing store failure
        """
        field.pre_save()
        field.is_valid()

        try:
            if limit is not None:
                # Execution options only apply to a newly begun transaction
                self.session.commit()
                self.session.connection(execution_options={'sqlite_begin': 'IMMEDIATE'})

            group_query = self.session.query(PropertyGroup).filter(PropertyGroup.id == field.group_id)
            if limit is not None:
                group_query = group_query.with_for_update()

            if group_query.first() is None:
                raise ValidationError(
                    f"Property group {field.group_id} does not exist",
                    'model.property_field.is_valid.group_id.app_error'
                )

            if limit is not None and self._active_count_query(field.group_id).scalar() >= limit:
                raise FieldLimitError(field.group_id, limit)

            self.session.add(field)
            self.session.commit()

        except PropertyError:
            self.session.rollback()
            raise
        except IntegrityError as e:
            self.session.rollback()
            raise ConflictError(
                f"Property field {field.id} already exists",
                'app.property_field.create.duplicate.app_error'
            ) from e
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"[PROPERTIES] Failed to create property field '{field.name}': {e}")
            raise StoreError('create_property_field') from e

        logger.debug(f"[PROPERTIES] Created property field {field.id} in group {field.group_id}")
        return field

    def get(self, field_id: str) -> PropertyField:
        """Fetch a field by id, regardless of group or deletion state."""
        try:
            field = self.session.get(PropertyField, field_id)
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError('get_property_field') from e

        if not field:
            raise NotFoundError(
                f"Property field {field_id} not found",
                'app.property_field.get.not_found.app_error'
            )
        return field

    def patch(self, field_id: str, patch: PropertyFieldPatch) -> PropertyField:
        """Apply the present patch attributes and stamp a newer update_at."""
        field = self.get(field_id)

        try:
            field.patch(patch)
            field.update_at = next_millis(field.update_at)
            field.is_valid()
            self.session.commit()
        except PropertyError:
            # Discard the in-memory changes
            self.session.rollback()
            raise
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError('patch_property_field') from e

        return field

    def delete(self, field_id: str) -> PropertyField:
        """
        Soft-delete a field and, in the same transaction, all of its active values.

        Calling it again on a deleted field keeps the original delete_at and
        re-sweeps the values, which completes an interrupted cascade.
        """
        field = self.get(field_id)

        try:
            if not field.delete_at:
                field.delete_at = get_millis()
            swept = self.value_store.delete_for_field(field.id, field.delete_at, commit=False)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"[PROPERTIES] Failed to delete property field {field_id}: {e}")
            raise StoreError('delete_property_field') from e

        logger.info(f"[PROPERTIES] Deleted property field {field_id} and {swept} values")
        return field

    def search(self, opts: PropertyFieldSearchOpts) -> List[PropertyField]:
        """Search fields, ordered by creation; deleted ones only with include_deleted."""
        offset, limit = resolve_page(opts.page, opts.per_page, self.default_per_page, self.max_per_page)

        query = self.session.query(PropertyField)

        if opts.group_id:
            query = query.filter(PropertyField.group_id == opts.group_id)

        if opts.target_type:
            query = query.filter(PropertyField.target_type == opts.target_type)

        if opts.target_id:
            query = query.filter(PropertyField.target_id == opts.target_id)

        if not opts.include_deleted:
            query = query.filter(PropertyField.delete_at == 0)

        query = query.order_by(PropertyField.create_at, PropertyField.id)

        try:
            return query.offset(offset).limit(limit).all()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError('search_property_fields') from e

    def count_active(self, group_id: str) -> int:
        try:
            return self._active_count_query(group_id).scalar()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError('count_active_property_fields') from e
