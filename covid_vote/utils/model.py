import logging
from typing import Optional
from os.path import basename, dirname, join, exists
from os import listdir, makedirs, remove
from shutil import copy

import cmdstanpy as stan

logger = logging.getLogger(__name__)

class CmdStanModel(stan.CmdStanModel):

    """
    A small wrapper class around cmdstanpy's `CmdStanModel` class that compiles
    the executable in a separate build directory. The stan file is copied into
    that directory (and refreshed whenever the source changes) so that the
    executable always sits next to the program it was built from. The source
    directory is kept on the include path.
    """

    def __init__(
        self,
        stan_file: str,
        dir: Optional[str] = None,
        **kwargs
    ):

        if dir:
            makedirs(dir, exist_ok=True)
            target = join(dir, basename(stan_file))

            # Only refresh the copy when the source program has changed
            if not exists(target) or _read(stan_file) != _read(target):
                copy(stan_file, dir)
                logger.info(f'Copied {stan_file} to {dir}')

            model_dir = dirname(stan_file) or '.'
            stan_file = target

            stanc_options: dict = kwargs.get('stanc_options') or {}
            include_paths = stanc_options.get('include-paths')
            if include_paths is None:
                stanc_options['include-paths'] = model_dir
            elif isinstance(include_paths, str):
                stanc_options['include-paths'] = [include_paths, model_dir]
            elif isinstance(include_paths, list):
                stanc_options['include-paths'] = include_paths + [model_dir]
            else:
                raise TypeError('include-paths must be of type str or list.')
            kwargs['stanc_options'] = stanc_options

        super().__init__(
            stan_file=stan_file,
            **kwargs
        )

def _read(path: str) -> str:
    with open(path) as f:
        return f.read()

def clean_dir(dir: str = 'exe') -> list:

    """Util function for removing all build artifacts in a directory"""

    if not exists(dir):
        return []

    files = listdir(dir)
    for f in files:
        remove(join(dir, f))
    logger.info(f'Removed {len(files)} files from {dir}: {", ".join(files)}')

    return files
