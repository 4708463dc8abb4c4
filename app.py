import logging

from flask import Flask, jsonify
from config import Config
from routes import admin_bp, health_bp, security_bp

from models import db
from flask_migrate import Migrate
from security.errors import PersistenceError


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    _configure_logging(app)

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(security_bp)
    app.register_blueprint(admin_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    @app.errorhandler(PersistenceError)
    def _persistence_failed(exc):
        app.logger.exception("Security store error: %s", exc)
        return jsonify(error="Internal server error"), 500

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    return app


def _configure_logging(app):
    level = app.config.get("LOG_LEVEL", "INFO")
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    app.logger.setLevel(level)

#-------------------------
import click
from security.errors import NotFoundError, ValidationError
from utils.security_context import get_gate, get_store

def register_cli(app):
    @app.cli.command("block-ip")
    @click.argument("address")
    @click.option("--reason", required=True, help="Why the address is blocked.")
    @click.option("--hours", type=float, default=None, help="Block duration; omit for permanent.")
    def block_ip(address, reason, hours):
        """Block a source address (operator bootstrap)."""
        try:
            block = get_gate().block_address(address, reason, duration_hours=hours, blocked_by="cli")
        except ValidationError as exc:
            raise click.BadParameter(str(exc))

        until = block.expires_at.isoformat() if block.expires_at else "permanently"
        click.echo(f"{block.ip_address} blocked ({until}), id={block.id}")

    @app.cli.command("unblock-ip")
    @click.argument("block_id", type=int)
    def unblock_ip(block_id):
        """Deactivate a block by id, keeping its record."""
        try:
            block = get_gate().unblock(block_id)
        except NotFoundError:
            raise click.ClickException(f"Block {block_id} not found")
        click.echo(f"{block.ip_address} unblocked")

    @app.cli.command("list-blocks")
    def list_blocks():
        """Print the blocked address registry."""
        store = get_store()
        now = store.now()
        for b in store.list_blocks():
            state = "BLOCKING" if b.is_blocking(now) else "inactive"
            expires = b.expires_at.isoformat() if b.expires_at else "never"
            click.echo(f"{b.id}\t{b.ip_address}\t{state}\texpires={expires}\t{b.reason}")

#-------------------------




if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
