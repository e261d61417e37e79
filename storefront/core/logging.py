import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO"):
    logging.basicConfig(format=LOG_FORMAT, level=getattr(logging, level.upper(), logging.INFO))
    # passlib complains about newer bcrypt builds on every hash
    logging.getLogger("passlib").setLevel(logging.ERROR)
    logging.getLogger("storefront").setLevel(getattr(logging, level.upper(), logging.INFO))
