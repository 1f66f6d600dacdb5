from .service import (
    DeviceAnalyzer,
    parse_activity_manager_config,
    parse_config_locales,
    parse_features,
    parse_gl_extensions,
    parse_properties,
)

__all__ = [
    "DeviceAnalyzer",
    "parse_activity_manager_config",
    "parse_config_locales",
    "parse_features",
    "parse_gl_extensions",
    "parse_properties",
]
