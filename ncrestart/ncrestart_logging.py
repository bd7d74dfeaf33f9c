import logging

init_log = logging.getLogger('ncrestart.initialization')


def initialization_logging(logger, obj, entries):
    """
    Log the creation of `obj` together with its parameters

    Parameters
    ----------
    logger : logging.Logger
    obj : object
        the object being initialized
    entries : list of str or dict
        names of attributes of `obj` to report, or a mapping of
        parameter name to value
    """
    if hasattr(entries, 'items'):
        parameters = dict(entries)
    else:
        parameters = {name: getattr(obj, name) for name in entries}

    logger.info("Initializing <%s> (%s)",
                hex(id(obj)), obj.__class__.__name__)
    for name, value in parameters.items():
        logger.info("Parameter: %s : %s", name, value)
