from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    database_url: str = 'sqlite+pysqlite:///:memory:'
    seed_demo_data: bool = False
    log_level: str = 'INFO'

    shop_name: str = 'TorqueTrack Workshop'
    currency_symbol: str = '₱'
    # Percentages, e.g. 12 for 12%.
    default_tax_rate: Decimal = Decimal('12')
    purchase_order_fallback_tax_rate: Decimal = Decimal('10')

    @property
    def database_url_normalized(self) -> str:
        url = self.database_url.strip()
        if url.startswith('postgres://'):
            return 'postgresql+psycopg://' + url[len('postgres://') :]
        if url.startswith('postgresql://'):
            return 'postgresql+psycopg://' + url[len('postgresql://') :]
        return url


settings = Settings()
