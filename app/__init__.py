import click
from flask import Flask

from app.api import api_bp
from app.config import Config
from app.extensions import db, migrate
from app.jobs.scheduler import start_scheduler


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    db.init_app(app)
    migrate.init_app(app, db)

    app.register_blueprint(api_bp)

    @app.cli.command("init-db")
    def init_db_command():
        db.create_all()
        print("Initialized Smart Bookmarks database.")

    @app.cli.command("create-user")
    @click.argument("username")
    @click.password_option()
    @click.option("--display-name", default=None)
    @click.option("--email", default=None)
    def create_user_command(username, password, display_name, email):
        from app.models import User

        if User.query.filter_by(username=username).first():
            raise click.ClickException(f"user {username} already exists")
        user = User(username=username, display_name=display_name, email=email)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        print(f"Created user {username} ({user.id}).")

    with app.app_context():
        db.create_all()

    start_scheduler(app)
    return app
