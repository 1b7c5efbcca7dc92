import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Override key accepted for every game; empty disables it
    MASTER_KEY = os.environ.get('POOLCLOCK_MASTER_KEY', '')
    # Clock limits (seconds)
    SHOT_CLOCK_LIMIT_SEC = int(os.environ.get('SHOT_CLOCK_LIMIT_SEC', '60'))
    GAME_CLOCK_LIMIT_SEC = int(os.environ.get('GAME_CLOCK_LIMIT_SEC', '1200'))
    # Scheduler period (sec). The clocks count whole seconds, so keep this at 1.
    TICK_INTERVAL_SEC = float(os.environ.get('TICK_INTERVAL_SEC', '1.0'))
    SCHEDULER_ENABLED = os.environ.get('SCHEDULER_ENABLED', '1') not in ('0', 'false', 'no')
    # Pending frames per SSE viewer before it is dropped as unresponsive
    SUBSCRIBER_QUEUE_SIZE = int(os.environ.get('SUBSCRIBER_QUEUE_SIZE', '32'))
    # Idle comment interval on SSE streams (sec)
    STREAM_KEEPALIVE_SEC = float(os.environ.get('STREAM_KEEPALIVE_SEC', '15'))
    CORS_ORIGINS = [
        o.strip() for o in os.environ.get(
            'CORS_ORIGINS',
            'http://localhost:5173,http://127.0.0.1:5173'
        ).split(',') if o.strip()
    ]
