"""Custom profile attributes JSON endpoints."""
from typing import Any, Dict, List, Tuple

from flask import Blueprint, request, current_app
from app.exceptions import ValidationError
from app.models import PropertyField, PropertyFieldPatch
from app.services.custom_profile_attributes_service import get_cpa_service

cpa_bp = Blueprint('custom_profile_attributes', __name__, url_prefix='/api/v4/custom_profile_attributes')


def _json_body() -> Any:
    data = request.get_json(silent=True)
    if data is None:
        raise ValidationError("Request body must be valid JSON", 'api.custom_profile_attributes.invalid_body')
    return data


@cpa_bp.route('/fields', methods=['GET'])
def list_fields() -> List[Dict[str, Any]]:
    """List active custom profile attribute fields."""
    fields = get_cpa_service().list_cpa_fields()
    return [field.to_dict() for field in fields]


@cpa_bp.route('/fields', methods=['POST'])
def create_field() -> Tuple[Dict[str, Any], int]:
    """Create a custom profile attribute field."""
    data = _json_body()
    if not isinstance(data, dict):
        raise ValidationError("Field payload must be an object", 'api.custom_profile_attributes.invalid_body')

    name = data.get('name') or ''
    field = PropertyField(
        name=name.strip() if isinstance(name, str) else name,
        type=data.get('type') or '',
        attrs=data.get('attrs'),
    )
    created = get_cpa_service().create_cpa_field(field)
    current_app.logger.info(f"CPA field created via API: {created.id}")
    return created.to_dict(), 201


@cpa_bp.route('/fields/<field_id>', methods=['PATCH'])
def patch_field(field_id: str) -> Dict[str, Any]:
    """Patch name, type or attrs of a custom profile attribute field."""
    patch = PropertyFieldPatch.from_dict(_json_body())
    field = get_cpa_service().patch_cpa_field(field_id, patch)
    return field.to_dict()


@cpa_bp.route('/fields/<field_id>', methods=['DELETE'])
def delete_field(field_id: str) -> Dict[str, Any]:
    """Delete a custom profile attribute field and its values."""
    get_cpa_service().delete_cpa_field(field_id)
    current_app.logger.info(f"CPA field deleted via API: {field_id}")
    return {'status': 'OK'}


@cpa_bp.route('/values/<user_id>', methods=['GET'])
def list_values(user_id: str) -> Dict[str, Any]:
    """Map of field id to value for a user."""
    values = get_cpa_service().list_cpa_values(user_id)
    return {value.field_id: value.value for value in values}


@cpa_bp.route('/values/<user_id>', methods=['PATCH'])
def patch_values(user_id: str) -> Dict[str, Any]:
    """Set a user's values from a {field_id: value} map."""
    data = _json_body()
    if not isinstance(data, dict):
        raise ValidationError("Values payload must be an object", 'api.custom_profile_attributes.invalid_body')

    values = get_cpa_service().patch_cpa_values(user_id, data)
    return {value.field_id: value.value for value in values}
