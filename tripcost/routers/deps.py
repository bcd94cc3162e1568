"""Shared router dependencies.

Everything hangs off ``app.state`` (set by ``create_app``) so an app built
with a settings override never falls back to the cached global settings.
"""

from fastapi import Request

from tripcost.core.config import Settings
from tripcost.db.dal import Database
from tripcost.services.rates.cache_service import ExchangeRateService


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_db(request: Request) -> Database:
    return request.app.state.db


def get_rate_service(request: Request) -> ExchangeRateService:
    return request.app.state.rate_service
