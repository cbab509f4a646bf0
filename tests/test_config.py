import config


def test_defaults():
    assert config.COUNTDOWN_MESSAGES == ["2", "1", "Go!"]
    assert config.CAPTURE_FRAMES == 3
    assert config.MAX_NUM_FACES == 1
    assert (config.CAMERA_WIDTH, config.CAMERA_HEIGHT) == (640, 480)
    assert config.COUNTDOWN_INTERVAL > 0
    assert config.CAPTURE_INTERVAL > 0
    assert config.PLAYBACK_INTERVAL > 0
    assert config.COOLDOWN_SECONDS > 0
    assert 0.0 <= config.MIN_DETECTION_CONFIDENCE <= 1.0
