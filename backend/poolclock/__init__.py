from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
import click
import secrets
from config import Config
from poolclock.services.clocks import registry, scheduler

socketio = SocketIO(async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []
    CORS(flask_app, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Clock state lives in process memory for the lifetime of the server
    registry.init_app(flask_app)

    from poolclock.main import main
    flask_app.register_blueprint(main)

    from poolclock.api.clock import clock
    flask_app.register_blueprint(clock, url_prefix='/clock')

    from poolclock.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    # Starts the once-per-second tick task (skipped in TESTING)
    scheduler.init_app(flask_app, socketio)

    @click.command('generate-master-key')
    def generate_master_key_command():
        """Prints a fresh random value for POOLCLOCK_MASTER_KEY."""
        click.echo(secrets.token_urlsafe(24))

    @click.command('list-games')
    def list_games_command():
        """Lists the games registered in this process."""
        for game_id in registry.list():
            click.echo(game_id)

    flask_app.cli.add_command(generate_master_key_command)
    flask_app.cli.add_command(list_games_command)

    return flask_app
