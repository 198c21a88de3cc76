import os
import sys
import warnings
from pathlib import Path

# Ignore warnings from aiortc's media stack
warnings.filterwarnings("ignore", category=DeprecationWarning, module="aiortc.*")

# Set test environment variables
os.environ.update({"LOGFIRE_ENABLE": "false"})

# Ensure the project root is on sys.path so `app` and `tests` packages resolve
PROJECT_ROOT = Path(__file__).resolve().parents[1]
project_root_str = str(PROJECT_ROOT)
if project_root_str not in sys.path:
    sys.path.insert(0, project_root_str)

# Import live-stream fakes so they are available to all tests
from tests.fixtures.live_fixtures import *  # noqa: E402, F403
