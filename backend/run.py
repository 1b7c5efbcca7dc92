import logging
from poolclock import create_app, socketio

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

app = create_app()

if __name__ == '__main__':
    # Use SocketIO server so the tick task and websockets share one loop
    socketio.run(app, debug=True, use_reloader=False)
