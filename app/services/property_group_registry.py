"""Property group registry - maps a feature name to a stable group id."""
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from app.exceptions import NotFoundError, StoreError, ValidationError
from app.models import PropertyGroup
from app.utils.ids import new_id

logger = logging.getLogger(__name__)


class PropertyGroupRegistry:
    """Register-or-fetch access to property groups."""

    def __init__(self, session):
        self.session = session

    def _find(self, name):
        return self.session.query(PropertyGroup).filter(
            PropertyGroup.name == name
        ).first()

    def register(self, name: str) -> PropertyGroup:
        """
        Get or create the property group registered under ``name``.

        This function is idempotent and safe under concurrent first-time
        registration thanks to the unique constraint on name: the loser of
        the race rolls back and reads the winner's row.

        Raises:
            ValidationError: if name is empty
            StoreError: if the group can be neither created nor read back
        """
        if not name:
            raise ValidationError(
                "Property group name is required",
                'app.property_group.register.name.app_error'
            )

        try:
            group = self._find(name)
            if group:
                return group

            group = PropertyGroup(id=new_id(), name=name)
            self.session.add(group)
            self.session.commit()
            logger.info(f"[PROPERTIES] Registered property group '{name}' ({group.id})")
            return group

        except IntegrityError as e:
            # Race condition: another process/thread created it simultaneously
            self.session.rollback()
            group = self._find(name)
            if group:
                logger.debug(f"[PROPERTIES] Property group '{name}' registered concurrently, reusing {group.id}")
                return group
            raise StoreError('register_property_group') from e

        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"[PROPERTIES] Failed to register property group '{name}': {e}")
            raise StoreError('register_property_group') from e

    def get(self, name: str) -> PropertyGroup:
        """Fetch a group by name without creating it."""
        try:
            group = self._find(name)
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError('get_property_group') from e

        if not group:
            raise NotFoundError(
                f"Property group '{name}' not found",
                'app.property_group.get.not_found.app_error'
            )
        return group

