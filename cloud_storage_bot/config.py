import os
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv

from .tokens import SHARE_TOKEN_LENGTH, USER_TOKEN_LENGTH

load_dotenv()

REQUIRED_BOT_VARS = ['API_ID', 'API_HASH', 'BOT_TOKEN']


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name, '')
    return int(value) if value.strip() else default


def _float_env(name: str) -> Optional[float]:
    value = os.getenv(name, '')
    return float(value) if value.strip() else None


@dataclass
class Settings:
    """Runtime configuration, normally read from the environment."""

    api_id: str = ''
    api_hash: str = ''
    bot_token: str = ''

    data_dir: str = 'data'
    database_path: str = ''
    files_dir: str = ''
    shares_dir: str = ''

    user_token_length: int = USER_TOKEN_LENGTH
    share_token_length: int = SHARE_TOKEN_LENGTH
    mint_retries: int = 3
    # Unset means shares are kept until removed by hand.
    share_ttl_hours: Optional[float] = None

    web_host: str = '0.0.0.0'
    web_port: int = 5000
    public_url: str = ''
    max_upload_mb: int = 50

    log_file: str = 'bot.log'
    log_level: str = 'INFO'

    def __post_init__(self):
        if not self.database_path:
            self.database_path = os.path.join(self.data_dir, 'cloud_storage.db')
        if not self.files_dir:
            self.files_dir = os.path.join(self.data_dir, 'files')
        if not self.shares_dir:
            self.shares_dir = os.path.join(self.data_dir, 'shares')
        if not self.public_url:
            self.public_url = f'http://localhost:{self.web_port}'
        self.public_url = self.public_url.rstrip('/')

    @property
    def share_ttl_seconds(self) -> Optional[float]:
        if self.share_ttl_hours is None:
            return None
        return self.share_ttl_hours * 3600

    def namespace_url(self, token: str) -> str:
        return f"{self.public_url}/namespaces/{token}"

    def share_url(self, token: str) -> str:
        return f"{self.public_url}/shares/{token}"

    @classmethod
    def from_env(cls) -> 'Settings':
        """Build settings from environment variables (and an optional .env file)."""
        return cls(
            api_id=os.getenv('API_ID', ''),
            api_hash=os.getenv('API_HASH', ''),
            bot_token=os.getenv('BOT_TOKEN', ''),
            data_dir=os.getenv('DATA_DIR', 'data'),
            database_path=os.getenv('DATABASE_PATH', ''),
            files_dir=os.getenv('FILES_DIR', ''),
            shares_dir=os.getenv('SHARES_DIR', ''),
            user_token_length=_int_env('USER_TOKEN_LENGTH', USER_TOKEN_LENGTH),
            share_token_length=_int_env('SHARE_TOKEN_LENGTH', SHARE_TOKEN_LENGTH),
            mint_retries=_int_env('MINT_RETRIES', 3),
            share_ttl_hours=_float_env('SHARE_TTL_HOURS'),
            web_host=os.getenv('WEB_HOST', '0.0.0.0'),
            web_port=_int_env('WEB_PORT', 5000),
            public_url=os.getenv('PUBLIC_URL', ''),
            max_upload_mb=_int_env('MAX_UPLOAD_MB', 50),
            log_file=os.getenv('LOG_FILE', 'bot.log'),
            log_level=os.getenv('LOG_LEVEL', 'INFO'),
        )

    def missing_bot_settings(self) -> List[str]:
        """Names of the required bot variables that are not set."""
        values = {'API_ID': self.api_id, 'API_HASH': self.api_hash, 'BOT_TOKEN': self.bot_token}
        return [name for name in REQUIRED_BOT_VARS if not values[name]]
