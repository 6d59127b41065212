import os
import copy
import logging
import logging.handlers
import yaml
from pathlib import Path
from typing import Dict, Any
from dotenv import load_dotenv


def load_config(config_path: str = 'config.yaml') -> Dict[str, Any]:
    """Load configuration from YAML file with environment variable overrides."""
    # Load environment variables
    load_dotenv()

    config = get_default_config()
    try:
        if os.path.exists(config_path):
            with open(config_path, 'r', encoding='utf-8') as f:
                file_config = yaml.safe_load(f) or {}
            config = merge_config(config, file_config)
    except Exception as e:
        logging.warning(f"Could not load config from {config_path}: {e}")
        config = get_default_config()

    # Override with environment variables
    config = apply_env_overrides(config)

    return config


def merge_config(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``.

    Nested dictionaries are merged key by key; any other value (lists included)
    replaces the default outright.
    """
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def get_default_config() -> Dict[str, Any]:
    """Get default configuration values."""
    return {
        'server': {
            'host': '127.0.0.1',
            'port': 8080,
            'root': '.'
        },
        'browser': {
            'executable_path': None,
            'headless': True,
            'viewport': {
                'width': 1200,
                'height': 1600,
                'device_scale_factor': 1
            },
            'args': [
                '--no-sandbox',
                '--disable-setuid-sandbox',
                '--disable-dev-shm-usage',
                '--disable-gpu',
                '--disable-background-timer-throttling',
                '--disable-backgrounding-occluded-windows',
                '--disable-renderer-backgrounding',
                '--disable-features=TranslateUI',
                '--disable-ipc-flooding-protection'
            ]
        },
        'preparation': {
            'block_images': True,
            'image_allow_patterns': [
                r'/img/',
                r'/images/',
                r'profile',
                r'favicon'
            ],
            'navigation_timeout': 30,
            'navigation_retries': 1,
            'wait_for_network_idle': False,
            'network_idle_timeout': 10,
            'emulate_media': 'screen',
            'font_stylesheets': [
                'https://fonts.googleapis.com/css2?family=Noto+Sans+KR:wght@300;400;500;700;900&display=swap'
            ],
            'font_families': [
                'Noto Sans KR',
                'Apple SD Gothic Neo',
                'Malgun Gothic',
                'NanumGothic',
                'Nanum Gothic',
                'sans-serif'
            ],
            'font_timeout': 15,
            'poll_interval': 0.2,
            'settle_delay': 1.0,
            'diagram': {
                'selector': '.mermaid',
                'library_global': 'mermaid',
                'library_timeout': 10,
                'timeout': 20,
                'min_width': 10,
                'min_height': 10,
                'min_elements': 3
            }
        },
        'normalization': {
            'enabled': True,
            'extra_rules': []
        },
        'pdf': {
            'format': 'A4',
            'print_background': True,
            'margins': {
                'top': '12mm',
                'right': '12mm',
                'bottom': '12mm',
                'left': '12mm'
            }
        },
        'export': {
            'output_dir': 'dist',
            'parallel': True,
            'max_concurrency': None,
            'strict': True
        },
        'targets': None,
        'logging': {
            'level': 'INFO',
            'log_to_file': False,
            'log_filename': 'export.log',
            'logs_dir': 'logs',
            'rotate_logs': True
        }
    }


def _to_bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides to configuration."""
    env_mappings = [
        ('PUPPETEER_EXECUTABLE_PATH', ('browser', 'executable_path', str)),
        ('BROWSER_EXECUTABLE_PATH', ('browser', 'executable_path', str)),
        ('HEADLESS', ('browser', 'headless', _to_bool)),
        ('EXPORT_PORT', ('server', 'port', int)),
        ('EXPORT_ROOT', ('server', 'root', str)),
        ('EXPORT_OUTPUT_DIR', ('export', 'output_dir', str)),
        ('EXPORT_PARALLEL', ('export', 'parallel', _to_bool)),
        ('LOG_LEVEL', ('logging', 'level', str)),
        ('DEBUG_MODE', ('logging', 'level', lambda x: 'DEBUG' if _to_bool(x) else config['logging']['level']))
    ]

    # Later entries win, so BROWSER_EXECUTABLE_PATH takes precedence.
    for env_var, (section, key, converter) in env_mappings:
        value = os.getenv(env_var)
        if value is not None and value != '':
            try:
                converted_value = converter(value)
                config[section][key] = converted_value
            except (ValueError, TypeError) as e:
                logging.warning(f"Invalid value for {env_var}: {value} - {e}")

    return config


def setup_logging(logging_config: Dict[str, Any]) -> logging.Logger:
    """Setup logging configuration."""
    level = getattr(logging, str(logging_config.get('level', 'INFO')).upper(), logging.INFO)

    # Configure logging
    logger = logging.getLogger()
    logger.setLevel(level)

    # Clear existing handlers
    logger.handlers.clear()

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)

    # Create formatter
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # File handler
    if logging_config.get('log_to_file', False):
        logs_dir = logging_config.get('logs_dir', 'logs')
        os.makedirs(logs_dir, exist_ok=True)
        log_filename = os.path.join(logs_dir, logging_config.get('log_filename', 'export.log'))

        if logging_config.get('rotate_logs', True):
            file_handler = logging.handlers.RotatingFileHandler(
                log_filename,
                maxBytes=10*1024*1024,  # 10MB
                backupCount=5,
                encoding='utf-8'
            )
        else:
            file_handler = logging.FileHandler(log_filename, encoding='utf-8')

        file_handler.setLevel(logging.DEBUG)  # File gets all logs
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # asyncio reports every slow callback at DEBUG
    logging.getLogger('asyncio').setLevel(logging.WARNING)

    return logger


def ensure_output_dir(output_dir: str) -> Path:
    """Create the distribution directory if it does not exist."""
    path = Path(output_dir)
    path.mkdir(parents=True, exist_ok=True)
    return path


def format_file_size(size_bytes: int) -> str:
    """Format file size in human readable format."""
    if size_bytes == 0:
        return "0B"

    size_names = ["B", "KB", "MB", "GB", "TB"]
    import math
    i = int(math.floor(math.log(size_bytes, 1024)))
    p = math.pow(1024, i)
    s = round(size_bytes / p, 2)
    return f"{s} {size_names[i]}"
