from utils.log import setup_logger, short

__all__ = ["setup_logger", "short"]
