from pathlib import Path

from jtest.settings import load_settings


def test_yaml_overlays_defaults(tmp_path):
    conf = tmp_path / "grader.yaml"
    conf.write_text(
        "paths:\n"
        "  upload_root: /srv/uploads\n"
        "timeouts:\n"
        "  case_ms: 500\n"
        "max_output_bytes: 4096\n"
    )
    s = load_settings(conf)
    assert s.upload_root == Path("/srv/uploads")
    assert s.default_timeout_ms == 500
    assert s.max_output_bytes == 4096
    assert s.compile_timeout_s == 30


def test_missing_conf_keeps_defaults(tmp_path):
    s = load_settings(tmp_path / "nope.yaml")
    assert s.max_output_bytes == 1024 * 1024
    assert s.workspace_dir is None
