import os

from dynaconf import Dynaconf


SETTINGS_FILES = [
    "configuration.toml",
]


class SingletonSettings:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            base_dir = os.path.dirname(os.path.abspath(__file__))
            settings_files = [os.path.join(base_dir, f) for f in SETTINGS_FILES]

            cls._instance.settings = Dynaconf(
                envvar_prefix="EASYFIX",
                settings_files=settings_files,
                merge_enabled=True,
            )
        return cls._instance


def get_settings():
    return SingletonSettings().settings
