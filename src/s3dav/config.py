import logging
import os
import ZConfig


_SCHEMA_PATH = os.path.join(os.path.dirname(__file__), "schema.xml")
_schema = None

_ADDRESSING_STYLES = ("auto", "path", "virtual")
_CACHE_BACKENDS = ("memory", "purge")


def addressing_style(value):
    value = value.lower()
    if value not in _ADDRESSING_STYLES:
        raise ValueError(f"s3-addressing-style must be one of {_ADDRESSING_STYLES}")
    return value


def cache_backend(value):
    value = value.lower()
    if value not in _CACHE_BACKENDS:
        raise ValueError(f"cache-backend must be one of {_CACHE_BACKENDS}")
    return value


def log_level(value):
    level = logging.getLevelName(value.upper())
    if not isinstance(level, int):
        raise ValueError(f"unknown log-level: {value!r}")
    return level


class GatewayConfig:
    """ZConfig datatype for the gateway configuration."""

    def __init__(self, section):
        self.config = section
        if section.cache_backend == "purge" and not section.cache_purge_url:
            raise ValueError("cache-backend purge requires cache-purge-url")

    def __getattr__(self, name):
        return getattr(self.config, name)

    def open_store(self):
        from s3dav.s3client import S3ObjectStore

        config = self.config
        return S3ObjectStore(
            bucket_name=config.bucket_name,
            prefix=config.s3_prefix,
            endpoint_url=config.s3_endpoint_url,
            region_name=config.s3_region,
            aws_access_key_id=config.s3_access_key,
            aws_secret_access_key=config.s3_secret_key,
            use_ssl=config.s3_use_ssl,
            addressing_style=config.s3_addressing_style,
            sse_customer_key=config.s3_sse_customer_key,
        )

    def open_cache(self):
        from s3dav.cache import ListingCache
        from s3dav.cache import PurgeInvalidator

        config = self.config
        if config.cache_backend == "purge":
            return PurgeInvalidator(config.cache_purge_url)
        return ListingCache(ttl=config.cache_ttl, max_entries=config.cache_max_entries)


def get_schema():
    global _schema
    if _schema is None:
        _schema = ZConfig.loadSchema(_SCHEMA_PATH)
    return _schema


def load_config(path):
    """Load a GatewayConfig from a configuration file path."""
    config, _handler = ZConfig.loadConfig(get_schema(), path)
    return config


def load_config_file(fp):
    """Load a GatewayConfig from an open configuration file."""
    config, _handler = ZConfig.loadConfigFile(get_schema(), fp)
    return config
