# campus_voting/cli.py
# Seeding commands, e.g. `flask --app campus_voting create-admin root --role SUPER_ADMIN`

import click

from campus_voting import db
from campus_voting.authentication.rbac import AdminRole
from campus_voting.database.models import AdminAccount
from campus_voting.encryption.password_hashing import PasswordHashingService


def register_commands(app):
    @app.cli.command("create-admin")
    @click.argument("username")
    @click.option("--role", type=click.Choice([r.value for r in AdminRole]), default=AdminRole.ADMIN.value)
    @click.password_option()
    def create_admin(username, role, password):
        """Create an admin account."""
        if AdminAccount.query.filter_by(username=username).first():
            raise click.ClickException(f"Admin {username} already exists.")
        try:
            password_hash = PasswordHashingService().hash_password(password)
        except ValueError as e:
            raise click.ClickException(str(e))
        db.session.add(AdminAccount(username=username, password_hash=password_hash, role=role))
        db.session.commit()
        click.echo(f"Admin {username} created with role {role}.")
