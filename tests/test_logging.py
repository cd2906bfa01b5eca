from questlines.core.logging import configure_logging, get_logger


def test_verbosity_controls_what_reaches_stderr(capsys):
    log = get_logger("questlines.tests")

    configure_logging(1)
    log.info("questline_saved", questline_id="q1")
    log.debug("cascade_uncomplete", origin="q1")
    err = capsys.readouterr().err
    assert "questline_saved" in err
    assert "questline_id=q1" in err
    assert "cascade_uncomplete" not in err

    configure_logging(0)
    log.info("questline_loaded", questline_id="q1")
    log.warning("request_failed", code="E_TRANSPORT")
    err = capsys.readouterr().err
    assert "questline_loaded" not in err
    assert "code=E_TRANSPORT" in err

    with capsys.disabled():
        configure_logging(0)
