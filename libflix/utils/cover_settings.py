"""Cover resolver tuning.

Values come from the Flask config (see ``config.Config``); anything missing or
unparseable falls back to the defaults below.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional


def _read_float(config: Mapping[str, Any], name: str, default: float) -> float:
    try:
        raw = config.get(name)
        if raw in (None, ''):
            return default
        return float(raw)
    except (TypeError, ValueError):
        return default


def _read_int(config: Mapping[str, Any], name: str, default: int) -> int:
    try:
        raw = config.get(name)
        if raw in (None, ''):
            return default
        return int(raw)
    except (TypeError, ValueError):
        return default


def _read_bool(config: Mapping[str, Any], name: str, default: bool) -> bool:
    raw = config.get(name)
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    return str(raw).strip().lower() in ('1', 'true', 'on', 'yes')


@dataclass
class CoverSettings:
    success_ttl: float = 30 * 60
    failure_ttl: float = 10 * 60
    retry_delay: float = 2.0
    retry_passes: int = 1
    min_dimension: int = 10
    preload_concurrency: int = 6
    high_priority_count: int = 6
    high_priority_timeout_factor: float = 0.75
    max_candidates: int = 12
    sweep_interval: float = 10 * 60
    resolve_timeout: float = 60.0
    max_image_bytes: int = 5 * 1024 * 1024
    block_private_hosts: bool = True
    request_origin: str = 'http://localhost'
    host_policy_file: Optional[str] = None

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "CoverSettings":
        d = cls()
        return cls(
            success_ttl=max(1.0, _read_float(config, 'COVER_SUCCESS_TTL', d.success_ttl)),
            failure_ttl=max(1.0, _read_float(config, 'COVER_FAILURE_TTL', d.failure_ttl)),
            retry_delay=max(0.0, _read_float(config, 'COVER_RETRY_DELAY', d.retry_delay)),
            retry_passes=max(0, _read_int(config, 'COVER_RETRY_PASSES', d.retry_passes)),
            min_dimension=max(0, _read_int(config, 'COVER_MIN_DIMENSION', d.min_dimension)),
            preload_concurrency=max(1, _read_int(config, 'COVER_PRELOAD_CONCURRENCY', d.preload_concurrency)),
            high_priority_count=max(0, _read_int(config, 'COVER_HIGH_PRIORITY_COUNT', d.high_priority_count)),
            high_priority_timeout_factor=max(0.1, _read_float(
                config, 'COVER_HIGH_PRIORITY_TIMEOUT_FACTOR', d.high_priority_timeout_factor)),
            max_candidates=max(1, _read_int(config, 'COVER_MAX_CANDIDATES', d.max_candidates)),
            sweep_interval=max(1.0, _read_float(config, 'COVER_SWEEP_INTERVAL', d.sweep_interval)),
            resolve_timeout=max(1.0, _read_float(config, 'COVER_RESOLVE_TIMEOUT', d.resolve_timeout)),
            max_image_bytes=max(1024, _read_int(config, 'COVER_MAX_IMAGE_BYTES', d.max_image_bytes)),
            block_private_hosts=_read_bool(config, 'COVER_BLOCK_PRIVATE_HOSTS', d.block_private_hosts),
            request_origin=str(config.get('COVER_REQUEST_ORIGIN') or d.request_origin),
            host_policy_file=config.get('COVER_HOST_POLICY_FILE') or None,
        )
