"""Request-scoped access to the handles built by create_app()."""

from __future__ import annotations

from typing import Callable

from fastapi import Request

from guestbridge.classification.anthropic_classifier import TextClassifier
from guestbridge.config import Settings
from guestbridge.domain.opera_sync import FetcherFactory
from guestbridge.infra.db import Database


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(request: Request) -> Database:
    return request.app.state.db


def get_classifier_factory(request: Request) -> Callable[[], TextClassifier]:
    return request.app.state.classifier_factory


def get_fetcher_factory(request: Request) -> FetcherFactory:
    return request.app.state.fetcher_factory
