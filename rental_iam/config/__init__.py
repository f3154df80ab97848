"""Configuration module for the rental IAM service."""
from .settings import AppConfig, load_settings

__all__ = ["AppConfig", "load_settings"]
