from libflix.utils.cover_settings import CoverSettings


def test_defaults_when_config_empty():
    settings = CoverSettings.from_config({})
    assert settings == CoverSettings()
    assert settings.retry_passes == 1
    assert settings.success_ttl == 1800 and settings.failure_ttl == 600


def test_string_values_are_parsed():
    settings = CoverSettings.from_config({
        'COVER_SUCCESS_TTL': '120',
        'COVER_RETRY_DELAY': '0.5',
        'COVER_RETRY_PASSES': '2',
        'COVER_BLOCK_PRIVATE_HOSTS': 'off',
        'COVER_HOST_POLICY_FILE': '',
    })
    assert settings.success_ttl == 120.0
    assert settings.retry_delay == 0.5
    assert settings.retry_passes == 2
    assert settings.block_private_hosts is False
    assert settings.host_policy_file is None


def test_bad_values_fall_back_and_are_clamped():
    settings = CoverSettings.from_config({
        'COVER_FAILURE_TTL': 'ten minutes',
        'COVER_PRELOAD_CONCURRENCY': '0',
        'COVER_RETRY_DELAY': '-3',
    })
    assert settings.failure_ttl == 600
    assert settings.preload_concurrency == 1
    assert settings.retry_delay == 0.0
