# src/mauthn_client/app_logging.py

import logging
from pythonjsonlogger import jsonlogger

_HANDLER_NAME = "mauthn_client.json"


def setup_logger(level: str = "INFO"):
    logger = logging.getLogger()
    logger.setLevel(level.upper())
    # create_app may run more than once per process (tests, reloads)
    if any(handler.get_name() == _HANDLER_NAME for handler in logger.handlers):
        return
    logHandler = logging.StreamHandler()
    logHandler.set_name(_HANDLER_NAME)
    formatter = jsonlogger.JsonFormatter('%(asctime)s %(levelname)s %(name)s %(message)s',
                                         rename_fields={'levelname': 'level', 'asctime': 'timestamp'})
    logHandler.setFormatter(formatter)
    logger.addHandler(logHandler)
