from src.api.app import create_app
from src.api.dependencies import ServiceContainer, build_services

__all__ = ["create_app", "ServiceContainer", "build_services"]
