"""
Integration tests for the custom profile attributes service.
"""

import pytest
from app.exceptions import FieldLimitError, NotFoundError, ValidationError
from app.models import (
    PropertyField, PropertyFieldType, PropertyFieldPatch, PropertyFieldSearchOpts, PropertyValueSearchOpts
)
from app.services.custom_profile_attributes_service import (
    get_cpa_service, FIELD_NOT_FOUND_ERROR_ID, INVALID_FIELD_ERROR_ID, LIMIT_REACHED_ERROR_ID
)
from app.utils.ids import new_id


def _text_field(name='Field', **kwargs):
    return PropertyField(name=name, type=PropertyFieldType.TEXT, **kwargs)


class TestCPAServiceBinding:
    """The CPA service is bound to one group for the app lifetime."""

    def test_service_is_cached_per_app(self, app, cpa_service):
        assert get_cpa_service(app) is cpa_service

    def test_bound_to_registered_group(self, cpa_service, cpa_group):
        assert cpa_service.group_id == cpa_group.id
        assert cpa_group.name == 'custom_profile_attributes'


class TestCreateCPAField:
    """Tests for create_cpa_field."""

    def test_create_field(self, cpa_service, cpa_group, property_service):
        field = _text_field(name='Department', attrs={'visibility': 'hidden'})
        created = cpa_service.create_cpa_field(field)

        assert created.id
        assert created.group_id == cpa_group.id
        assert created.attrs == {'visibility': 'hidden'}

        fetched = property_service.get_property_field(created.id)
        assert fetched.name == 'Department'
        assert fetched.create_at != 0
        assert fetched.create_at == fetched.update_at

    def test_invalid_field(self, cpa_service):
        with pytest.raises(ValidationError) as exc_info:
            cpa_service.create_cpa_field(PropertyField(name='No type'))

        assert exc_info.value.error_id == INVALID_FIELD_ERROR_ID
        assert exc_info.value.status_code == 400
        assert exc_info.value.payload == {'cause': 'model.property_field.is_valid.type.app_error'}

    @pytest.mark.parametrize('kwargs, cause', [
        ({'name': 'Tags', 'type': ['text']}, 'type'),
        ({'name': 5, 'type': 'text'}, 'name'),
        ({'name': 'Tags', 'type': 'text', 'attrs': ['a']}, 'attrs'),
    ])
    def test_wrongly_typed_attributes_are_invalid(self, cpa_service, cpa_group, property_service, kwargs, cause):
        with pytest.raises(ValidationError) as exc_info:
            cpa_service.create_cpa_field(PropertyField(**kwargs))

        assert exc_info.value.error_id == INVALID_FIELD_ERROR_ID
        assert exc_info.value.payload == {'cause': f'model.property_field.is_valid.{cause}.app_error'}
        assert property_service.count_active_property_fields(cpa_group.id) == 0

    def test_group_is_forced_to_cpa(self, cpa_service, cpa_group, other_group):
        created = cpa_service.create_cpa_field(_text_field(group_id=other_group.id))
        assert created.group_id == cpa_group.id

    def test_missing_group_defaults_to_cpa(self, cpa_service, cpa_group):
        created = cpa_service.create_cpa_field(_text_field(group_id=''))
        assert created.group_id == cpa_group.id

    def test_field_limit(self, app, cpa_service, property_service, cpa_group):
        limit = app.config['CPA_FIELD_LIMIT']
        for i in range(limit):
            created = cpa_service.create_cpa_field(_text_field(name=f'Field {i}'))
            assert created.id

        with pytest.raises(FieldLimitError) as exc_info:
            cpa_service.create_cpa_field(_text_field(name='One too many'))

        assert exc_info.value.error_id == LIMIT_REACHED_ERROR_ID
        assert exc_info.value.status_code == 422
        assert property_service.count_active_property_fields(cpa_group.id) == limit

        names = {f.name for f in property_service.search_property_fields(
            PropertyFieldSearchOpts(group_id=cpa_group.id, include_deleted=True, per_page=100)
        )}
        assert 'One too many' not in names

    def test_deleted_fields_do_not_count_towards_limit(self, cpa_service):
        cpa_service.field_limit = 2
        first = cpa_service.create_cpa_field(_text_field(name='First'))
        cpa_service.create_cpa_field(_text_field(name='Second'))

        with pytest.raises(FieldLimitError):
            cpa_service.create_cpa_field(_text_field(name='Third'))

        cpa_service.delete_cpa_field(first.id)
        assert cpa_service.create_cpa_field(_text_field(name='Third')).id

    def test_other_groups_do_not_count_towards_limit(self, cpa_service, other_group, make_field):
        cpa_service.field_limit = 1
        make_field(other_group.id)
        make_field(other_group.id)

        assert cpa_service.create_cpa_field(_text_field()).id


class TestGetAndListCPAFields:
    """Tests for get_cpa_field and list_cpa_fields."""

    def test_get_existing_field(self, cpa_service):
        created = cpa_service.create_cpa_field(_text_field(name='Test Field', attrs={'visibility': 'hidden'}))

        fetched = cpa_service.get_cpa_field(created.id)
        assert fetched.id == created.id
        assert fetched.name == 'Test Field'
        assert fetched.attrs == {'visibility': 'hidden'}

    def test_get_missing_field(self, cpa_service):
        with pytest.raises(NotFoundError) as exc_info:
            cpa_service.get_cpa_field(new_id())
        assert exc_info.value.error_id == FIELD_NOT_FOUND_ERROR_ID

    def test_list_only_cpa_fields(self, cpa_service, cpa_group, other_group, make_field):
        make_field(cpa_group.id, name='Field 1')
        make_field(other_group.id, name='Field 2')
        make_field(cpa_group.id, name='Field 3')

        names = {field.name for field in cpa_service.list_cpa_fields()}
        assert names == {'Field 1', 'Field 3'}

    def test_list_hides_deleted_fields(self, cpa_service):
        kept = cpa_service.create_cpa_field(_text_field(name='Kept'))
        doomed = cpa_service.create_cpa_field(_text_field(name='Doomed'))
        cpa_service.delete_cpa_field(doomed.id)

        assert [f.id for f in cpa_service.list_cpa_fields()] == [kept.id]


class TestPatchCPAField:
    """Tests for patch_cpa_field."""

    def test_patch_field(self, cpa_service):
        field = cpa_service.create_cpa_field(_text_field(attrs={'visibility': 'hidden'}))
        update_at = field.update_at

        patch = PropertyFieldPatch(
            name='Patched name',
            attrs={'visibility': 'default'},
            target_id=new_id(),
            target_type='channel'
        )
        updated = cpa_service.patch_cpa_field(field.id, patch)

        assert updated.id == field.id
        assert updated.name == 'Patched name'
        assert updated.attrs['visibility'] == 'default'
        assert updated.target_id == ''
        assert updated.target_type == ''
        assert updated.update_at > update_at

    def test_patch_never_changes_target(self, cpa_service, cpa_group, make_field):
        linked_target = new_id()
        field = make_field(cpa_group.id, target_id=linked_target, target_type='team')

        updated = cpa_service.patch_cpa_field(
            field.id, PropertyFieldPatch(target_id='', target_type='')
        )
        assert updated.target_id == linked_target
        assert updated.target_type == 'team'

    def test_patch_type(self, cpa_service):
        field = cpa_service.create_cpa_field(_text_field())
        updated = cpa_service.patch_cpa_field(field.id, PropertyFieldPatch(type=PropertyFieldType.DATE))
        assert updated.type == 'date'

    def test_invalid_patch(self, cpa_service):
        field = cpa_service.create_cpa_field(_text_field())

        with pytest.raises(ValidationError) as exc_info:
            cpa_service.patch_cpa_field(field.id, PropertyFieldPatch(name=''))
        assert exc_info.value.error_id == INVALID_FIELD_ERROR_ID

    def test_patch_with_non_mapping_attrs(self, cpa_service, property_service):
        field = cpa_service.create_cpa_field(_text_field(attrs={'visibility': 'hidden'}))
        field_id = field.id

        with pytest.raises(ValidationError) as exc_info:
            cpa_service.patch_cpa_field(field_id, PropertyFieldPatch(attrs='hidden'))

        assert exc_info.value.error_id == INVALID_FIELD_ERROR_ID
        assert exc_info.value.payload == {'cause': 'model.property_field.is_valid.attrs.app_error'}
        assert property_service.get_property_field(field_id).attrs == {'visibility': 'hidden'}

    def test_patch_missing_field(self, cpa_service):
        with pytest.raises(NotFoundError) as exc_info:
            cpa_service.patch_cpa_field(new_id(), PropertyFieldPatch(name='x'))
        assert exc_info.value.error_id == FIELD_NOT_FOUND_ERROR_ID


class TestDeleteCPAField:
    """Tests for delete_cpa_field."""

    def test_delete_missing_field(self, cpa_service):
        with pytest.raises(NotFoundError) as exc_info:
            cpa_service.delete_cpa_field(new_id())
        assert exc_info.value.error_id == FIELD_NOT_FOUND_ERROR_ID

    def test_delete_field_and_values(self, cpa_service, property_service, make_value):
        field = cpa_service.create_cpa_field(_text_field())
        for i in range(3):
            assert make_value(field, value=f'Value {i}').id

        opts = PropertyValueSearchOpts(per_page=10, field_id=field.id)
        assert len(property_service.search_property_values(opts)) == 3

        cpa_service.delete_cpa_field(field.id)

        assert property_service.get_property_field(field.id).delete_at != 0
        assert property_service.search_property_values(opts) == []

        opts.include_deleted = True
        values = property_service.search_property_values(opts)
        assert len(values) == 3
        assert all(value.delete_at != 0 for value in values)


class TestCPAValues:
    """Tests for per-user CPA values."""

    def test_patch_and_list_values(self, cpa_service):
        field_a = cpa_service.create_cpa_field(_text_field(name='A'))
        field_b = cpa_service.create_cpa_field(_text_field(name='B'))
        user_id = new_id()

        cpa_service.patch_cpa_value(user_id, field_a.id, 'alpha')
        cpa_service.patch_cpa_value(user_id, field_b.id, 'beta')
        cpa_service.patch_cpa_value(user_id, field_a.id, 'alpha 2')

        values = {v.field_id: v.value for v in cpa_service.list_cpa_values(user_id)}
        assert values == {field_a.id: 'alpha 2', field_b.id: 'beta'}
        assert cpa_service.list_cpa_values(new_id()) == []

    def test_patch_values_checks_all_fields_first(self, cpa_service):
        field = cpa_service.create_cpa_field(_text_field())
        user_id = new_id()

        with pytest.raises(NotFoundError):
            cpa_service.patch_cpa_values(user_id, {field.id: 'x', new_id(): 'y'})

        assert cpa_service.list_cpa_values(user_id) == []

    def test_patch_value_of_deleted_field(self, cpa_service):
        field = cpa_service.create_cpa_field(_text_field())
        cpa_service.delete_cpa_field(field.id)

        with pytest.raises(NotFoundError) as exc_info:
            cpa_service.patch_cpa_value(new_id(), field.id, 'x')
        assert exc_info.value.error_id == FIELD_NOT_FOUND_ERROR_ID

    def test_patch_value_requires_user(self, cpa_service):
        field = cpa_service.create_cpa_field(_text_field())
        with pytest.raises(ValidationError):
            cpa_service.patch_cpa_value('', field.id, 'x')

    def test_deleted_field_values_disappear_from_user(self, cpa_service):
        field = cpa_service.create_cpa_field(_text_field())
        user_id = new_id()
        cpa_service.patch_cpa_value(user_id, field.id, 'x')

        cpa_service.delete_cpa_field(field.id)

        assert cpa_service.list_cpa_values(user_id) == []
