"""Tests for discovery-source classification."""

import pytest

from adoption_tracker.projects.classification import classify_source


class TestClassifySource:
    @pytest.mark.parametrize(
        "path",
        [
            "Dockerfile",
            "build/Dockerfile.prod",
            "images/api.dockerfile",
            "Containerfile",
            "/docker/dockerfile",
        ],
    )
    def test_dockerfiles(self, path):
        assert classify_source(path) == "dockerfile"

    @pytest.mark.parametrize("path", ["docker-compose.yml", "deploy/compose.prod.yaml"])
    def test_compose(self, path):
        assert classify_source(path) == "compose"

    def test_workflow(self):
        assert classify_source(".github/workflows/release.yml") == "github-actions"

    def test_other_yaml_is_manifest(self):
        assert classify_source("k8s/deployment.yaml") == "manifest"

    @pytest.mark.parametrize("path", ["", "Makefile", "README.md"])
    def test_other(self, path):
        assert classify_source(path) == "other"
