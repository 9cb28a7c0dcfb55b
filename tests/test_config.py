import importlib
import sys


def reload_config(monkeypatch, **env):
    for key, value in env.items():
        if value is None:
            monkeypatch.delenv(key, raising=False)
        else:
            monkeypatch.setenv(key, value)
    module_name = "deckcast.config"
    if module_name in sys.modules:
        del sys.modules[module_name]
    config = importlib.import_module(module_name)
    importlib.reload(config)
    return config


def test_defaults(monkeypatch):
    config = reload_config(
        monkeypatch,
        TRANSITION_GAP_MS=None,
        EMPTY_SLIDE_DURATION_MS=None,
        AUDIO_SAMPLE_RATE=None,
        EXPORT_REALTIME=None,
        NARRATION_CACHE_BACKEND=None,
    )
    assert config.Config.TRANSITION_GAP_MS == 2000.0
    assert config.Config.EMPTY_SLIDE_DURATION_MS == 3000.0
    assert config.Config.AUDIO_SAMPLE_RATE == 44100
    assert (config.Config.VIDEO_WIDTH, config.Config.VIDEO_HEIGHT) == (1920, 1080)
    assert config.Config.EXPORT_REALTIME is False
    assert config.Config.NARRATION_CACHE_BACKEND == "memory"


def test_env_overrides(monkeypatch):
    config = reload_config(
        monkeypatch,
        TRANSITION_GAP_MS="500",
        EXPORT_REALTIME="yes",
        NARRATION_CACHE_BACKEND="Redis",
        VIDEO_FPS="24",
    )
    assert config.Config.TRANSITION_GAP_MS == 500.0
    assert config.Config.EXPORT_REALTIME is True
    assert config.Config.NARRATION_CACHE_BACKEND == "redis"
    assert config.Config.VIDEO_FPS == 24


def test_unknown_cache_backend_falls_back(monkeypatch):
    config = reload_config(monkeypatch, NARRATION_CACHE_BACKEND="memcached")
    assert config.Config.NARRATION_CACHE_BACKEND == "memory"


def test_env_flag_parsing(monkeypatch):
    config = reload_config(monkeypatch)
    assert config._env_flag("off", default=True) is False
    assert config._env_flag("maybe", default=True) is True
    assert config._env_flag(None) is False
