"""
Loyalty Program API.

Single resource endpoint used by the CRM:
- GET    program info, tier catalog, customer overview or history
- POST   loyalty actions (earn_points, redeem_points, birthday_bonus, referral_bonus)
- PUT    partial profile update
"""
from flask import Blueprint, request, jsonify, current_app
from ..extensions import db
from ..services.loyalty_processor import LoyaltyProcessor
from ..services.profile_service import LoyaltyProfileService
from ..utils.errors import (
    ErrorCode,
    bad_request,
    internal_error,
    loyalty_error_response,
)
from ..utils.exceptions import LoyaltyError


loyalty_program_bp = Blueprint('loyalty_program', __name__, url_prefix='/api/crm/loyalty/program')


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


@loyalty_program_bp.route('', methods=['GET'])
def get_program():
    """
    Query params:
        action=tiers                      -> tier catalog + program constants
        customerId=X                      -> profile overview
        customerId=X&action=history&limit -> ledger, newest first
        (none)                            -> program summary with member counters
    """
    customer_id = request.args.get('customerId')
    action = request.args.get('action')

    try:
        service = LoyaltyProfileService()

        if action == 'tiers':
            return jsonify(service.list_tiers())

        if customer_id and action == 'history':
            limit = request.args.get('limit')
            if limit is not None:
                try:
                    limit = int(limit)
                except ValueError:
                    return bad_request('limit must be an integer', ErrorCode.INVALID_FIELD)
                if limit < 1:
                    return bad_request('limit must be at least 1', ErrorCode.INVALID_FIELD)
            return jsonify(service.get_history(customer_id, limit))

        if customer_id:
            return jsonify(service.get_overview(customer_id))

        return jsonify(service.program_summary())

    except LoyaltyError as e:
        return loyalty_error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception('Get loyalty program error')
        return internal_error('Failed to retrieve loyalty program information')


@loyalty_program_bp.route('', methods=['POST'])
def process_action():
    """
    Process a loyalty action.

    Request body:
    {
        "action": "earn_points",
        "customerId": "cust_001",
        "amount": 500,
        "categories": ["Premium Oud"],
        "transactionId": "order_123",   # optional
        "specialEvent": "ramadan"       # optional
    }

    redeem_points takes points, redemptionType and metadata;
    referral_bonus takes referralCustomerId.
    """
    data = _json_body()
    if data is None:
        return bad_request('Request body must be a JSON object')

    action = data.pop('action', None)
    customer_id = data.pop('customerId', None)

    if not action:
        return bad_request('action is required', ErrorCode.MISSING_FIELD)
    if not customer_id:
        return bad_request('customerId is required', ErrorCode.MISSING_FIELD)
    if not isinstance(customer_id, str):
        return bad_request('customerId must be a string', ErrorCode.INVALID_FIELD)

    try:
        result = LoyaltyProcessor().process(action, customer_id, data)
        return jsonify(result)

    except LoyaltyError as e:
        return loyalty_error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception(f'Loyalty {action} error for {customer_id}')
        return internal_error('Failed to process loyalty transaction')


@loyalty_program_bp.route('', methods=['PUT'])
def update_profile():
    """
    Merge a partial profile.

    Request body:
    {
        "customerId": "cust_001",
        "preferences": {"language": "ar"},
        "engagementScore": 90
    }
    """
    data = _json_body()
    if data is None:
        return bad_request('Request body must be a JSON object')

    customer_id = data.pop('customerId', None)
    if not customer_id:
        return bad_request('customerId is required', ErrorCode.MISSING_FIELD)
    if not isinstance(customer_id, str):
        return bad_request('customerId must be a string', ErrorCode.INVALID_FIELD)

    try:
        result = LoyaltyProfileService().update_profile(customer_id, data)
        return jsonify(result)

    except LoyaltyError as e:
        return loyalty_error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception(f'Update loyalty profile error for {customer_id}')
        return internal_error('Failed to update loyalty profile')
