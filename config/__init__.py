from .config_loader import BotSettings, ConfigLoader

__all__ = ["BotSettings", "ConfigLoader"]
