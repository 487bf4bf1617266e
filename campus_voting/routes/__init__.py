# campus_voting/routes/__init__.py

from flask import request

from campus_voting.errors import BadRequest


def json_body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise BadRequest("Request body must be a JSON object.")
    return data


def page_args(default_limit=20, max_limit=100):
    try:
        page = max(int(request.args.get('page', 1)), 1)
        limit = min(max(int(request.args.get('limit', default_limit)), 1), max_limit)
    except ValueError:
        raise BadRequest("page and limit must be integers.")
    return page, limit


def paginated(pagination, key, items):
    return {
        'success': True,
        key: items,
        'total': pagination.total,
        'currentPage': pagination.page,
        'totalPages': pagination.pages,
    }


def register_blueprints(app):
    from campus_voting.routes.auth import auth_bp
    from campus_voting.routes.voting import voting_bp
    from campus_voting.routes.teams import teams_bp
    from campus_voting.routes.admin import admin_bp
    from campus_voting.routes.access import access_bp
    from campus_voting.routes.admins import admins_bp
    from campus_voting.routes.leaderboard import leaderboard_bp
    from campus_voting.operations.health_monitor import health_bp

    prefix = app.config['API_PREFIX'].rstrip('/')
    app.register_blueprint(auth_bp, url_prefix=f'{prefix}/auth')
    app.register_blueprint(voting_bp, url_prefix=f'{prefix}/voting')
    app.register_blueprint(teams_bp, url_prefix=f'{prefix}/teams')
    app.register_blueprint(admin_bp, url_prefix=f'{prefix}/admin')
    app.register_blueprint(access_bp, url_prefix=f'{prefix}/admin')
    app.register_blueprint(admins_bp, url_prefix=f'{prefix}/admin/admins')
    app.register_blueprint(leaderboard_bp, url_prefix=f'{prefix}/leaderboard')
    app.register_blueprint(health_bp)
