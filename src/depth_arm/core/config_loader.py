import json
import logging
import os

logger = logging.getLogger(__name__)

def default_config():
    return {
        "camera": {
            "type": "realsense",
            "realsense": {
                "preset": "high_accuracy",
                "depth_width": 640,
                "depth_height": 480,
                "fps": 30
            }
        },
        "logging": {
            "level": "WARNING"
        },
        "segmentation": {
            "max_depth_delta_m": 0.05,
            "manhattan_radius": 2,
            "downsample": 4
        },
        "projection": {
            "min_depth_m": 0.1,
            "max_depth_m": 3.0
        },
        "clustering": {
            "k": 12,
            "restarts": 3,
            "max_iter": 10,
            "epsilon": 0.001,
            "connect_threshold_m": 0.15
        },
        "arm": {
            "start_pos": [0.0, 0.0, 0.5],
            "max_dist_to_start_m": 0.3,
            "dxdz_threshold": 1.5,
            "max_missed_steps": 5,
            "smoothing_factor": 0.3
        }
    }

def load_config(config_path="config.json"):
    """
    Loads configuration from a JSON file.
    If the file doesn't exist, returns default configuration.
    """
    defaults = default_config()

    if not os.path.exists(config_path):
        # Try looking in parent directories or typical locations
        possible_paths = [
            os.path.join("..", config_path),
            os.path.join("..", "..", config_path),
            os.path.join(os.path.dirname(__file__), "..", "..", "..", config_path)
        ]
        for p in possible_paths:
            if os.path.exists(p):
                config_path = p
                break
        else:
            logger.info("Config file %s not found. Using defaults.", config_path)
            return defaults

    try:
        with open(config_path, 'r') as f:
            user_config = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Error loading config %s: %s. Using defaults.", config_path, e)
        return defaults

    # Sections merge one level deep; unknown top-level keys are passed through
    config = defaults
    for key, value in user_config.items():
        if isinstance(value, dict) and isinstance(config.get(key), dict):
            config[key].update(value)
        else:
            config[key] = value

    logger.debug("Loaded config from %s", config_path)
    return config
