from chat_provider.config.loader import AnthropicSettings, Config, get_config

__all__ = ["AnthropicSettings", "Config", "get_config"]
