"""
Flask application factory for the LibFlix cover service.

The factory wires one cover resolver per application: host policy, result
cache, diagnostics sink and the background event loop the resolver runs on.
"""

import atexit
import logging
import os
from dataclasses import dataclass
from typing import Optional

from flask import Flask

from config import Config

from .domain.errors import CatalogError
from .services.async_runner import BackgroundLoop
from .services.catalog import Catalog
from .services.cover_diagnostics import CoverDiagnostics
from .services.cover_resolver import CoverResolver, ImageLoader
from .services.host_policy import ReliabilityScorer, load_host_policies
from .services.image_loader import RequestsImageLoader
from .utils.cover_settings import CoverSettings

logger = logging.getLogger(__name__)


@dataclass
class CoverRuntime:
    resolver: CoverResolver
    loop: BackgroundLoop
    catalog: Catalog
    diagnostics: CoverDiagnostics
    settings: CoverSettings


def _load_catalog(path: Optional[str]) -> Catalog:
    if not path or not os.path.exists(path):
        logger.info(f"[APP] No catalog file at {path!r}; starting with an empty catalog")
        return Catalog()
    try:
        catalog = Catalog.from_json_file(path)
    except CatalogError as e:
        logger.error(f"[APP] {e}; starting with an empty catalog")
        return Catalog()
    logger.info(f"[APP] Loaded {len(catalog)} catalog items from {path}")
    return catalog


def create_app(config_object=Config, image_loader: Optional[ImageLoader] = None,
               catalog: Optional[Catalog] = None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Configure Python logging level from LOG_LEVEL env (default ERROR)
    log_level_name = os.getenv('LOG_LEVEL', 'ERROR').upper()
    log_level = getattr(logging, log_level_name, logging.ERROR)
    logging.getLogger().setLevel(log_level)
    app.logger.setLevel(log_level)
    # Suppress asyncio debug logging unless explicitly needed
    logging.getLogger('asyncio').setLevel(logging.INFO)

    settings = CoverSettings.from_config(app.config)
    policies = load_host_policies(settings.host_policy_file) if settings.host_policy_file else None
    diagnostics = CoverDiagnostics()
    loader = image_loader or RequestsImageLoader(
        max_bytes=settings.max_image_bytes,
        origin=settings.request_origin,
        block_private_hosts=settings.block_private_hosts,
    )
    resolver = CoverResolver(
        loader,
        scorer=ReliabilityScorer(policies),
        settings=settings,
        diagnostics=diagnostics,
        on_failure=diagnostics.report_failure,
    )
    if catalog is None:
        catalog = _load_catalog(app.config.get('CATALOG_PATH'))

    loop = BackgroundLoop().start()
    loop.run(resolver.start_sweeper())
    atexit.register(loop.stop)

    app.extensions['libflix'] = CoverRuntime(
        resolver=resolver,
        loop=loop,
        catalog=catalog,
        diagnostics=diagnostics,
        settings=settings,
    )

    from .routes import register_blueprints
    register_blueprints(app)

    logger.info(f"[APP] {app.config.get('SITE_NAME', 'LibFlix')} ready with {len(catalog)} catalog items")
    return app
