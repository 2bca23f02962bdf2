import os
from dotenv import load_dotenv

# Load environment variables from .env file(s)
# 1) Project root .env
load_dotenv()

basedir = os.path.abspath(os.path.dirname(__file__))
data_dir = os.environ.get('LIBFLIX_DATA_DIR') or os.path.join(basedir, 'data')

# 2) Overlay data/.env so settings saved next to the catalog take precedence
data_env_path = os.path.join(data_dir, '.env')
if os.path.exists(data_env_path):
    load_dotenv(dotenv_path=data_env_path, override=True)


class Config:
    # Expose data directory path for other modules
    DATA_DIR = data_dir

    # Application settings
    SITE_NAME = os.environ.get('SITE_NAME', 'LibFlix')
    JSON_SORT_KEYS = False

    # Catalog supplier: JSON list of books (flat or legacy metadata layout)
    CATALOG_PATH = os.environ.get('LIBFLIX_CATALOG_PATH') or os.path.join(data_dir, 'catalog.json')

    # Cover resolution. Durations are seconds unless noted.
    COVER_SUCCESS_TTL = os.environ.get('COVER_SUCCESS_TTL', '1800')  # 30 minutes
    COVER_FAILURE_TTL = os.environ.get('COVER_FAILURE_TTL', '600')  # 10 minutes
    COVER_RETRY_DELAY = os.environ.get('COVER_RETRY_DELAY', '2.0')
    COVER_RETRY_PASSES = os.environ.get('COVER_RETRY_PASSES', '1')
    COVER_MIN_DIMENSION = os.environ.get('COVER_MIN_DIMENSION', '10')  # pixels
    COVER_PRELOAD_CONCURRENCY = os.environ.get('COVER_PRELOAD_CONCURRENCY', '6')
    COVER_HIGH_PRIORITY_COUNT = os.environ.get('COVER_HIGH_PRIORITY_COUNT', '6')
    COVER_HIGH_PRIORITY_TIMEOUT_FACTOR = os.environ.get('COVER_HIGH_PRIORITY_TIMEOUT_FACTOR', '0.75')
    COVER_MAX_CANDIDATES = os.environ.get('COVER_MAX_CANDIDATES', '12')
    COVER_SWEEP_INTERVAL = os.environ.get('COVER_SWEEP_INTERVAL', '600')
    COVER_RESOLVE_TIMEOUT = os.environ.get('COVER_RESOLVE_TIMEOUT', '60')
    COVER_MAX_IMAGE_BYTES = os.environ.get('COVER_MAX_IMAGE_BYTES', str(5 * 1024 * 1024))
    COVER_BLOCK_PRIVATE_HOSTS = os.environ.get('COVER_BLOCK_PRIVATE_HOSTS', 'true').lower() in ['true', 'on', '1']
    COVER_REQUEST_ORIGIN = os.environ.get('COVER_REQUEST_ORIGIN', 'http://localhost')
    # Optional JSON file of host -> {base_score, timeout_ms, use_cross_origin, unreliable}
    COVER_HOST_POLICY_FILE = os.environ.get('COVER_HOST_POLICY_FILE')


class TestingConfig(Config):
    TESTING = True
    CATALOG_PATH = None
    COVER_RETRY_DELAY = 0
    COVER_BLOCK_PRIVATE_HOSTS = False
    COVER_HOST_POLICY_FILE = None
