# campus_voting/routes/voting.py

from flask import Blueprint, g, jsonify, request

from campus_voting.audit.audit_logger import audit_logger
from campus_voting.authentication.sessions import login_required, resolve_student, token_from_request
from campus_voting.errors import ApiError
from campus_voting.realtime.events import DATA_CHANGED, publish
from campus_voting.routes import json_body
from campus_voting.security.token_manager import STUDENT
from campus_voting.voting.config_store import load_config_snapshot
from campus_voting.voting.service import cast_votes, voting_status

voting_bp = Blueprint('voting', __name__)


@voting_bp.route('/config', methods=['GET'])
def get_config():
    snapshot = load_config_snapshot()
    # Personalized for a live student session even when an admin cookie is also present
    try:
        account = resolve_student(token_from_request(request, STUDENT))
    except ApiError:
        account = None
    return jsonify({'success': True, **voting_status(snapshot, account)})


@voting_bp.route('/cast', methods=['POST'])
@login_required
def cast():
    account = g.current_account
    data = json_body()
    result = cast_votes(account.id, data.get('votes'))

    audit_logger.log_user_action(account, 'VOTE_CAST', {
        'votes': {str(tx.team_id): tx.vote_count for tx in result.transactions},
        'effectiveDate': result.effective_date.isoformat() + 'Z',
    })
    publish(DATA_CHANGED, {'reason': 'vote'})

    return jsonify({
        'success': True,
        'message': 'Votes cast successfully',
        'votesUsed': result.votes_used,
        'remaining': result.remaining,
    })
