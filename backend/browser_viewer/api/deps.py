from fastapi import Depends
from starlette.requests import HTTPConnection

from browser_viewer.services.nlp_translator import NlpTranslator
from browser_viewer.services.session_coordinator import SessionCoordinator
from browser_viewer.services.session_store import SessionStore


def get_coordinator(connection: HTTPConnection) -> SessionCoordinator:
    """The single coordinator owned by the running app (HTTP and WebSocket alike)"""
    return connection.app.state.coordinator


def get_store(coordinator: SessionCoordinator = Depends(get_coordinator)) -> SessionStore:
    return coordinator.store


def get_translator(connection: HTTPConnection) -> NlpTranslator:
    return connection.app.state.translator
