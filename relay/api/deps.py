"""Shared FastAPI dependencies resolving startup-built collaborators from app state."""

from __future__ import annotations

from fastapi import Request

from relay.config import Settings
from relay.jobs.dispatch import DeliveryDispatcher
from relay.notifications.translator import TranslatorPolicy


def get_dispatcher(request: Request) -> DeliveryDispatcher:
  """Return the dispatcher started by the lifespan."""
  return request.app.state.dispatcher


def get_translator_policy(request: Request) -> TranslatorPolicy:
  """Return the path/header translation policy."""
  return request.app.state.translator_policy


def get_app_settings(request: Request) -> Settings:
  """Return the settings the app was built with."""
  return request.app.state.settings
