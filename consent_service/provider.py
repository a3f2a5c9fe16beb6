from abc import ABC
import importlib
import logging
import os


def import_from_string(path: str):
    """Returns the attribute named by a dotted path such as 'package.module.ClassName'."""
    module_name, _, attribute = path.rpartition('.')
    if not module_name:
        raise ImportError(f'"{path}" does not name a module attribute')
    module = importlib.import_module(module_name)
    try:
        return getattr(module, attribute)
    except AttributeError:
        raise ImportError(f'{module_name} has no attribute {attribute}')


class Provider(ABC):
    """Base for pluggable collaborators that can be swapped out through an environment variable."""
    environment_variable_name: str = None

    @classmethod
    def get_provider(cls, name: str = None, default=None):
        name = name or os.environ.get(cls.environment_variable_name)
        if name:
            try:
                return import_from_string(name)
            except ImportError:
                logging.warning(f'Unable to load provider "{name}", falling back to {default}', exc_info=True)
        return default
