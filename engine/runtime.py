import os
import sys

from bs4 import __version__ as bs4_version
from yt_dlp.version import __version__ as ytdlp_version


def get_runtime_info():
    return {
        "app_version": os.environ.get("YTMA_VERSION", "0.1.0"),
        "python_version": sys.version.split()[0],
        "yt_dlp_version": ytdlp_version,
        "bs4_version": bs4_version,
    }
