"""reStrike Web API"""

from .app import create_app, socketio, set_simulator

__all__ = ["create_app", "socketio", "set_simulator"]
