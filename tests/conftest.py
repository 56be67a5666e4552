import pytest
import uuid

from app import create_app
from app.database import get_session
from app.models import PropertyField, PropertyFieldType, PropertyValue
from app.services.property_service import PropertyService
from app.services.custom_profile_attributes_service import get_cpa_service


@pytest.fixture(scope='function')
def app():
    """Create application instance for testing (fresh in-memory database)."""
    app = create_app('config.TestConfig')
    with app.app_context():
        yield app


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Create database session for testing."""
    session = get_session()
    yield session
    session.rollback()
    session.remove()


@pytest.fixture(scope='function')
def property_service(app, session):
    """Generic property service bound to the test session."""
    return PropertyService.from_app(app, session)


@pytest.fixture(scope='function')
def cpa_service(app, session):
    """CPA service, registering the CPA group on first use."""
    return get_cpa_service(app)


@pytest.fixture(scope='function')
def cpa_group(app, property_service, cpa_service):
    """The property group the CPA service is bound to."""
    return property_service.get_property_group(app.config['CPA_GROUP_NAME'])


@pytest.fixture(scope='function')
def other_group(property_service):
    """A second feature's property group for isolation tests."""
    suffix = str(uuid.uuid4())[:8]
    return property_service.register_property_group(f'other-feature-{suffix}')


@pytest.fixture(scope='function')
def make_field(property_service):
    """Factory creating a text field directly through the generic service."""
    def _make_field(group_id, name=None, field_type=PropertyFieldType.TEXT, **kwargs):
        field = PropertyField(
            group_id=group_id,
            name=name or f'Field {uuid.uuid4().hex[:8]}',
            type=field_type,
            **kwargs
        )
        return property_service.create_property_field(field)
    return _make_field


@pytest.fixture(scope='function')
def make_value(property_service):
    """Factory attaching a value to a field for a random user."""
    def _make_value(field, value='some value', target_id=None, target_type='user'):
        property_value = PropertyValue(
            group_id=field.group_id,
            field_id=field.id,
            target_id=target_id or uuid.uuid4().hex,
            target_type=target_type,
            value=value
        )
        return property_service.create_property_value(property_value)
    return _make_value
