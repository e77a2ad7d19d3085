import logging

import pytest
import yaml

from gee_primer.utils.config_loader import get_setting, load_config
from gee_primer.utils.logging import get_logger, setup_logging, setup_logging_from_config


def write_yaml(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data), encoding="utf-8")


def test_defaults_when_no_config_files(tmp_path, clean_env):
    config = load_config(project_root=tmp_path)
    assert config["gee"]["project_name"] is None
    assert config["gee"]["default_scale"] == 30
    assert config["lessons"]["sensor"] == "sentinel2"
    assert config["region"]["bbox"] == [-122.6, 37.6, -122.3, 37.9]


def test_yaml_values_are_deep_merged_over_defaults(tmp_path, clean_env):
    write_yaml(tmp_path / "configs" / "config.yaml", {"gee": {"project_name": "demo-project"}})
    config = load_config(project_root=tmp_path)
    assert config["gee"]["project_name"] == "demo-project"
    assert config["gee"]["crs"] == "EPSG:4326"
    assert config["lessons"]["max_cloud"] == 20


def test_template_used_when_config_missing(tmp_path, clean_env):
    write_yaml(tmp_path / "configs" / "config.template.yaml", {"lessons": {"sensor": "landsat9"}})
    config = load_config(project_root=tmp_path)
    assert config["lessons"]["sensor"] == "landsat9"


def test_relative_config_path_resolved_against_project_root(tmp_path, clean_env):
    write_yaml(tmp_path / "other" / "lesson.yaml", {"lessons": {"list_limit": 3}})
    config = load_config("other/lesson.yaml", project_root=tmp_path)
    assert config["lessons"]["list_limit"] == 3


def test_environment_overrides_file(tmp_path, clean_env):
    write_yaml(tmp_path / "configs" / "config.yaml", {"gee": {"project_name": "from-file"}})
    clean_env.setenv("GP_GEE__PROJECT_NAME", "from-env")
    clean_env.setenv("GP_OUTPUT__MAPS", "elsewhere/maps")
    config = load_config(project_root=tmp_path)
    assert config["gee"]["project_name"] == "from-env"
    assert config["output"]["maps"] == "elsewhere/maps"
    assert config["output"]["downloads"] == "output/downloads"


def test_dotenv_file_is_loaded(tmp_path, clean_env):
    # register the variable so monkeypatch removes what load_dotenv sets
    clean_env.setenv("GP_LESSONS__REDUCER", "placeholder")
    clean_env.delenv("GP_LESSONS__REDUCER")
    (tmp_path / ".env").write_text("GP_LESSONS__REDUCER=mean\n", encoding="utf-8")
    config = load_config(project_root=tmp_path)
    assert config["lessons"]["reducer"] == "mean"


def test_non_mapping_yaml_rejected(tmp_path, clean_env):
    path = tmp_path / "configs" / "config.yaml"
    path.parent.mkdir(parents=True)
    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(project_root=tmp_path)


def test_get_setting():
    config = {"gee": {"default_scale": 10}}
    assert get_setting(config, "gee.default_scale") == 10
    assert get_setting(config, "gee.missing", "fallback") == "fallback"
    assert get_setting(config, "gee.default_scale.deeper") is None


def test_setup_logging_writes_file(tmp_path):
    log_file = tmp_path / "logs" / "run.log"
    logger = setup_logging(log_file=log_file, log_level="DEBUG", console=False)
    try:
        logging.getLogger("gee_primer.lessons").debug("hello from a lesson")
        for handler in logger.handlers:
            handler.flush()
        assert "hello from a lesson" in log_file.read_text(encoding="utf-8")
        assert logger.level == logging.DEBUG
    finally:
        for handler in list(logger.handlers):
            handler.close()
        logger.handlers.clear()


def test_setup_logging_from_config_resolves_relative_file(tmp_path):
    config = {"logging": {"level": "warning", "file": "logs/out.log", "console": "false"}}
    logger = setup_logging_from_config(config, tmp_path)
    try:
        assert logger.level == logging.WARNING
        assert len(logger.handlers) == 1
        assert (tmp_path / "logs").is_dir()
    finally:
        for handler in list(logger.handlers):
            handler.close()
        logger.handlers.clear()


def test_get_logger_defaults_to_package_logger():
    assert get_logger().name == "gee_primer"
    assert get_logger("gee_primer.lessons").parent is get_logger()
