"""Paychan project variables."""
import os
import os.path


VERSION = (0, 4, 1)

__version__ = '.'.join(map(str, VERSION))


# Defines hard coded global variables
PAYCHAN_VERSION = __version__
PAYCHAN_VERSION_MESSAGE = 'paychan version %(version)s'
PAYCHAN_USER_FOLDER = os.path.expanduser('~/.paychan/')
PAYCHAN_CONFIG_FILE = PAYCHAN_USER_FOLDER + 'paychan.json'
# two parents up from current dir
PAYCHAN_BASE_DIR = os.path.abspath(os.path.join(os.path.abspath(__file__), os.pardir, os.pardir))


# simple logic to load the environment only once
if "env_loaded" not in locals():
    env_loaded = True

    # ensures the file exists
    dotenv_path = os.path.join(PAYCHAN_BASE_DIR, ".env")
    if os.path.exists(dotenv_path):
        with open(dotenv_path, "rt") as f:
            for line in f:
                if not line or line.startswith('#') or '=' not in line:
                    continue
                key, value = line.strip().split('=', 1)
                value = value.strip("'").strip('"')
                os.environ.setdefault(key, value)


# Defines configurable global variables
PAYCHAN_DB_PATH = os.environ.get('PAYCHAN_DB_PATH', PAYCHAN_USER_FOLDER + 'channels.sqlite3')
PAYCHAN_PROGRAM_ID = os.environ.get('PAYCHAN_PROGRAM_ID', 'Fg6PaFpoGXkYsidMpWTK6W2BeZ7FEfcYkg476zPFsLnS')
