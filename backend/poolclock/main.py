from flask import Blueprint, jsonify
from poolclock.services.clocks import registry, scheduler

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Pool clock server'})

@main.route('/health')
def health():
    return jsonify({
        'status': 'healthy',
        'games': len(registry),
        'scheduler_running': scheduler.running,
    })
