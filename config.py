import os
import pickle

from const import DEFAULT_ENDIAN, MAX_RECENT_FILES
from fileutil import to_posix
from log import logger


DEFAULT_CONFIG_PATH = "config.pickle"


class Config:

    def __init__(self,
                 endian: str = DEFAULT_ENDIAN,
                 recent_files: list[str] | None = None,
                 export_folder: str = ""):
        self.endian = endian
        self.recent_files = recent_files if recent_files is not None else []
        self.export_folder = export_folder

    def add_recent_file(self, path: str):
        path = to_posix(os.path.abspath(path))
        if path in self.recent_files:
            self.recent_files.remove(path)
        self.recent_files.insert(0, path)
        del self.recent_files[MAX_RECENT_FILES:]

    def save_config(self, config_path: str = DEFAULT_CONFIG_PATH):
        try:
            with open(config_path, "wb") as f:
                pickle.dump(self, f)
        except (OSError, pickle.PickleError) as e:
            logger.error("Error occur when serializing configuration")
            logger.error(e)

    def get(self, attr: str, default=None):
        return getattr(self, attr, default)


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> Config | None:
    if not os.path.exists(config_path):
        logger.info("No existing configuration. Creating new one...")
        new_cfg = Config()
        new_cfg.save_config(config_path)
        return new_cfg

    cfg: Config | None = None
    try:
        with open(config_path, "rb") as f:
            cfg = pickle.load(f)
        if not isinstance(cfg, Config):
            raise ValueError("Invalid configuration data")
    except Exception as e:
        logger.critical("Error occurred when de-serializing configuration")
        logger.critical(e)
        logger.critical(f"Delete {config_path} to resolve the error")
        return None

    # For backwards compatibility with configuration created before these
    # were added
    cfg.endian = cfg.get("endian", DEFAULT_ENDIAN)
    cfg.export_folder = cfg.get("export_folder", "")
    cfg.recent_files = cfg.get("recent_files", [])
    cfg.recent_files = [file for file in cfg.recent_files if os.path.exists(file)]
    cfg.save_config(config_path)
    return cfg
