import logging


def get_logger(module_name, level=logging.INFO):
    formatter = logging.Formatter(
        fmt='[%(asctime)s %(name)s %(levelname)s] %(message)s',
        datefmt='%Y/%m/%d %H:%M:%S')

    logger = logging.getLogger(module_name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        handler.setLevel(logging.DEBUG)
        logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger
