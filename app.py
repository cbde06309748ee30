import logging

import click
from flask import Flask, jsonify

from config import Config
from routes import health_bp, auth_bp, booking_bp, machine_bp, certification_bp, audit_bp

from models import db
from flask_migrate import Migrate
from services.errors import BookingError
from utils.seed import seed_roles, seed_machines
from utils.auth_context import load_current_user
from security.csrf import enforce_csrf

# JSON-only API: nothing may be framed, sniffed or embedded
SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none';",
}


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(booking_bp)
    app.register_blueprint(machine_bp)
    app.register_blueprint(certification_bp)
    app.register_blueprint(audit_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    if app.config.get("TESTING"):
        with app.app_context():
            db.create_all()

    # Seed default roles at startup (idempotent)
    with app.app_context():
        seed_roles()

    @app.before_request
    def _load_user():
        load_current_user()

    @app.before_request
    def _csrf_protect():
        enforce_csrf()

    @app.errorhandler(BookingError)
    def _booking_error(exc):
        return jsonify(exc.to_dict()), exc.status_code

    @app.after_request
    def add_security_headers(resp):
        for name, value in SECURITY_HEADERS.items():
            resp.headers.setdefault(name, value)
        return resp

    register_cli(app)

    return app

#-------------------------
from models.user import User, Role
from models.machine import Machine
from security.certification import grant_certification
from security.rbac import ADMIN_ROLE

def _find_user(email):
    return User.query.filter_by(email=email.strip().lower()).first()

def register_cli(app):
    @app.cli.command("make-admin")
    @click.argument("email")
    def make_admin(email):
        """Promote a user to ADMIN by email (bootstrap)."""
        user = _find_user(email)
        if not user:
            click.echo("User not found")
            return

        admin_role = Role.query.filter_by(name=ADMIN_ROLE).first()
        if not admin_role:
            admin_role = Role(name=ADMIN_ROLE)
            db.session.add(admin_role)
            db.session.commit()

        if admin_role not in user.roles:
            user.roles.append(admin_role)
            db.session.commit()

        click.echo(f"{user.email} promoted to ADMIN")

    @app.cli.command("certify")
    @click.argument("email")
    @click.argument("machine_id", type=int)
    def certify(email, machine_id):
        """Grant a user the certification for one machine."""
        user = _find_user(email)
        if not user:
            click.echo("User not found")
            return
        machine = db.session.get(Machine, machine_id)
        if not machine or not machine.is_active:
            click.echo("Machine not found")
            return

        if grant_certification(user, machine):
            click.echo(f"{user.email} certified for {machine.name}")
        else:
            click.echo(f"{user.email} already certified for {machine.name}")

    @app.cli.command("seed-machines")
    def seed_machines_command():
        """Create the default machine catalog."""
        created = seed_machines()
        click.echo(f"Created {created} machine(s)")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
