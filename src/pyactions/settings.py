from __future__ import annotations
import os

BUNDLER = os.environ.get("PYACTIONS_BUNDLER", "stickytape")
BUNDLE_TIMEOUT = int(os.environ.get("PYACTIONS_BUNDLE_TIMEOUT", "60"))
ENV_PREFIX = os.environ.get("PYACTIONS_ENV_PREFIX", "GITHUB_EXPR_")
OUTPUT_DIR = os.environ.get("PYACTIONS_OUTPUT_DIR", "dist")
PYTHON_VERSION = os.environ.get("PYACTIONS_PYTHON_VERSION", "3.12")
