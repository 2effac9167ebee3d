"""Tests for specmodel.parser.svcconfig."""

from __future__ import annotations

from pathlib import Path

import pytest

from specmodel.exceptions import SpecParseError, SpecReadError
from specmodel.models import ServiceApi, ServiceConfig
from specmodel.parser.svcconfig import ServiceNames, extract_package_name, read_service_config

FIXTURES_DIR = Path(__file__).parent.parent / "fixtures"


class TestReadServiceConfig:
    def test_reads_fixture(self) -> None:
        config = read_service_config(str(FIXTURES_DIR / "publicca_v1.yaml"))
        assert config.name == "publicca.googleapis.com"
        assert config.title == "Public Certificate Authority API"
        assert [api.name for api in config.apis] == [
            "google.cloud.location.Locations",
            "google.cloud.security.publicca.v1.PublicCertificateAuthorityService",
        ]
        assert config.documentation.summary.startswith("The Public Certificate Authority API")

    def test_unknown_sections_are_kept(self) -> None:
        config = read_service_config(str(FIXTURES_DIR / "publicca_v1.yaml"))
        assert "authentication" in config.model_extra

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert read_service_config(str(path)) == ServiceConfig()

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(SpecReadError):
            read_service_config(str(tmp_path / "missing.yaml"))

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("name: [unterminated\n", encoding="utf-8")
        with pytest.raises(SpecParseError, match="Invalid service config YAML"):
            read_service_config(str(path))

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(SpecParseError, match="must be a YAML mapping"):
            read_service_config(str(path))

    def test_invalid_shape(self, tmp_path: Path) -> None:
        path = tmp_path / "apis.yaml"
        path.write_text("apis:\n  - title: no name\n", encoding="utf-8")
        with pytest.raises(SpecParseError, match="Invalid service config"):
            read_service_config(str(path))


class TestExtractPackageName:
    def _config(self, *names: str) -> ServiceConfig:
        return ServiceConfig(apis=[ServiceApi(name=n) for n in names])

    def test_none(self) -> None:
        assert extract_package_name(None) is None

    def test_skips_mixins(self) -> None:
        config = self._config(
            "google.cloud.location.Locations",
            "google.longrunning.Operations",
            "google.iam.v1.IAMPolicy",
            "google.cloud.secretmanager.v1.SecretManagerService",
        )
        assert extract_package_name(config) == ServiceNames(
            package_name="google.cloud.secretmanager.v1",
            service_name="SecretManagerService",
        )

    def test_only_mixins(self) -> None:
        assert extract_package_name(self._config("google.longrunning.Operations")) is None

    def test_unqualified_name(self) -> None:
        assert extract_package_name(self._config("Service")) == ServiceNames("", "Service")
