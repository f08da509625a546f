import logging
import sys


def setup_logging(level: str = "INFO", verbose: bool = False):
    """Setup logging configuration"""
    log_level = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO)

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)

    # Formatter
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    console_handler.setFormatter(formatter)

    # Configure root logger once; uvicorn reloads call this again
    logger = logging.getLogger()
    logger.setLevel(log_level)
    if not any(getattr(h, '_storytests', False) for h in logger.handlers):
        console_handler._storytests = True
        logger.addHandler(console_handler)

    # Reduce noise from external libraries
    for noisy in ('requests', 'urllib3', 'httpx', 'httpcore', 'openai'):
        logging.getLogger(noisy).setLevel(logging.WARNING)
